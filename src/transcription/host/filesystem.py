"""
Document host backed by a directory of markdown notes.

Wiki links are discovered in the order they appear in a note:
    [[target]]          plain link
    ![[target]]         embed
    [[target|alias]]    alias is ignored
    [[target#heading]]  heading is ignored

A link resolves, in order, as a vault-relative path, as a path relative to
the note's folder, then as a file name that is unique within the vault.
Blocking file I/O runs in worker threads via asyncio.to_thread. Paths that
resolve outside the vault root are refused with PermissionError.
"""

from __future__ import annotations

import asyncio
import re
from pathlib import Path, PurePosixPath

from transcription.errors import LinkResolutionError
from transcription.host.base import DocumentHost

WIKI_LINK = re.compile(r"!?\[\[([^\[\]]+?)\]\]")


def parse_links(text: str) -> list[str]:
    """Extract wiki link targets from note text in order of appearance."""
    targets = []
    for match in WIKI_LINK.finditer(text):
        target = match.group(1).split("|", 1)[0].split("#", 1)[0].strip()
        if target:
            targets.append(target)
    return targets


def _read_text(path: Path) -> str:
    # newline="" keeps the note's own line endings intact on write-back
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def _write_text(path: Path, text: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)


def _write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


class FileSystemVault(DocumentHost):
    """A vault rooted at a local directory."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser().resolve()

    def _abs(self, path: str) -> Path:
        return self.root / PurePosixPath(path)

    def _inside(self, path: str) -> Path:
        """Absolute path for host I/O; paths escaping the vault are refused."""
        target = self._abs(path)
        if not self._contains(target):
            raise PermissionError(f"{path} is outside the vault {self.root}")
        return target

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def _contains(self, path: Path) -> bool:
        return path.resolve().is_relative_to(self.root)

    def _files_named(self, name: str) -> list[Path]:
        return sorted(p for p in self.root.rglob("*") if p.name == name and p.is_file())

    async def links(self, document: str) -> list[str]:
        return parse_links(await self.read(document))

    async def resolve(self, link: str, source: str) -> str:
        return await asyncio.to_thread(self._resolve, link, source)

    def _resolve(self, link: str, source: str) -> str:
        relative_to_note = PurePosixPath(source).parent / link
        for candidate in (self._abs(link), self._abs(str(relative_to_note))):
            if self._contains(candidate) and candidate.is_file():
                return self._relative(candidate.resolve())

        name = PurePosixPath(link).name
        matches = self._files_named(name) if name else []
        if len(matches) == 1:
            return self._relative(matches[0])
        if len(matches) > 1:
            raise LinkResolutionError(link, source, f"{len(matches)} files are named {name!r}")
        raise LinkResolutionError(link, source, "no such file")

    async def link_text(self, path: str, source: str) -> str:  # noqa: ARG002
        return await asyncio.to_thread(self._link_text, path)

    def _link_text(self, path: str) -> str:
        name = PurePosixPath(path).name
        if len(self._files_named(name)) == 1:
            return name
        return path

    async def read(self, document: str) -> str:
        return await asyncio.to_thread(self._read, document)

    def _read(self, document: str) -> str:
        return _read_text(self._inside(document))

    async def modify(self, document: str, text: str) -> None:
        await asyncio.to_thread(self._modify, document, text)

    def _modify(self, document: str, text: str) -> None:
        _write_text(self._inside(document), text)

    async def read_binary(self, path: str) -> bytes:
        return await asyncio.to_thread(self._read_binary, path)

    def _read_binary(self, path: str) -> bytes:
        return self._inside(path).read_bytes()

    async def write_binary(self, path: str, data: bytes) -> None:
        await asyncio.to_thread(self._write_binary, path, data)

    def _write_binary(self, path: str, data: bytes) -> None:
        _write_bytes(self._inside(path), data)

    def notify(self, message: str, duration_ms: int | None = None) -> None:  # noqa: ARG002
        print(message)
