"""Abstract interface to the document environment hosting the notes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import PurePosixPath


class DocumentHost(ABC):
    """Link graph, document I/O, file access and notifications.

    Paths are host-relative strings using "/" separators. Document and file
    access is async so that a completion can suspend while the host does I/O.
    """

    @abstractmethod
    async def links(self, document: str) -> list[str]:
        """Return link targets of a document in discovery order, duplicates included."""

    @abstractmethod
    async def resolve(self, link: str, source: str) -> str:
        """Resolve a link found in ``source`` to exactly one file path.

        Raises:
            LinkResolutionError: The link does not point at a single existing file.
        """

    @abstractmethod
    async def link_text(self, path: str, source: str) -> str:
        """Return the text used inside ``[[...]]`` to cite ``path`` from ``source``."""

    @abstractmethod
    async def read(self, document: str) -> str:
        """Read the current text of a document."""

    @abstractmethod
    async def modify(self, document: str, text: str) -> None:
        """Replace the text of a document."""

    @abstractmethod
    async def read_binary(self, path: str) -> bytes:
        """Read a file's raw bytes."""

    @abstractmethod
    async def write_binary(self, path: str, data: bytes) -> None:
        """Create or overwrite a file with raw bytes."""

    @abstractmethod
    def notify(self, message: str, duration_ms: int | None = None) -> None:
        """Show a transient message to the user."""

    def name(self, path: str) -> str:
        """File name shown to the user."""
        return PurePosixPath(path).name
