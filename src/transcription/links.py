"""Find the transcribable audio files linked from a note."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import PurePosixPath

from transcription.errors import LinkResolutionError
from transcription.host.base import DocumentHost

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioReference:
    """One linked audio file, resolved to a single path in the host."""

    path: str
    extension: str
    source: str  # document the link was found in
    link: str  # link target as written in the document

    @property
    def sidecar_path(self) -> str:
        """``<stem>.json`` next to the audio file."""
        path = PurePosixPath(self.path)
        return str(path.with_name(f"{path.stem}.json"))


def link_extension(link: str) -> str | None:
    """Substring after the final ".", or None when the link has no "."."""
    if "." not in link:
        return None
    return link.rsplit(".", 1)[1]


async def collect(
    host: DocumentHost,
    document: str,
    allowed_extensions: Iterable[str],
    *,
    debug: bool = False,
) -> list[AudioReference]:
    """Return the audio references of ``document`` in discovery order.

    Links without an extension or with an extension outside
    ``allowed_extensions`` (case-sensitive) are skipped, as are links the
    host cannot resolve. Duplicate links yield one reference per occurrence.
    """
    allowed = frozenset(allowed_extensions)
    references: list[AudioReference] = []

    for link in await host.links(document):
        extension = link_extension(link)
        if extension is None or extension not in allowed:
            if debug:
                logger.debug("Skipping %s: extension not in %s", link, sorted(allowed))
            continue

        try:
            path = await host.resolve(link, document)
        except LinkResolutionError as exc:
            if debug:
                logger.debug("Could not find file %s: %s", link, exc)
            continue

        references.append(AudioReference(path=path, extension=extension, source=document, link=link))

    return references
