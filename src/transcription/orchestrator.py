"""
Fan-out of transcriptions over the audio files linked from one note.

Flow for ``Orchestrator.run(document, config)``:
    1. Collect AudioReferences from the note (transcription.links)
    2. Start one task per reference inside an asyncio.TaskGroup running in
       the background, then return a TranscriptionRun to the caller
    3. Each task reads the audio, calls the backend, splices the transcript
       under the citation in a freshly read copy of the note and writes the
       ``<stem>.json`` sidecar
    4. A failing task notifies the user and never cancels its siblings

Every completion does its own read-modify-write of the note, so two
completions finishing together can overwrite each other (last write wins).
Callers that need those writes serialized pass a ``document_lock``.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import re
from collections.abc import Coroutine, Sequence
from dataclasses import dataclass
from typing import Any

from transcription.backends import TranscriptionBackend, get_transcription_backend
from transcription.backends.types import TranscriptResult
from transcription.config import EngineConfig
from transcription.errors import DocumentWriteError, TranscriptionError
from transcription.host.base import DocumentHost
from transcription.links import AudioReference, collect
from transcription.process_registry import ProcessRegistry

logger = logging.getLogger(__name__)

START_NOTICE_MS = 3000


def format_timestamp(seconds: float) -> str:
    """Format as MM:SS, or HH:MM:SS past the first hour."""
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_transcript(result: TranscriptResult, timestamps: bool = False) -> str:
    """One trimmed line per segment, optionally prefixed with ``[MM:SS] ``."""
    lines = []
    for segment in result.segments:
        line = segment.text.strip()
        if timestamps:
            line = f"[{format_timestamp(segment.start)}] {line}"
        lines.append(line)
    return "\n".join(lines)


def citation_pattern(target: str) -> re.Pattern[str]:
    """Match ``[[target]]`` plus the ``[[target|alias]]`` and ``[[target#heading]]`` forms."""
    return re.compile(r"\[\[" + re.escape(target) + r"(?:[|#][^\[\]]*)?\]\]")


def splice_transcript(text: str, targets: Sequence[str], transcript: str) -> str:
    """Insert ``"\\n" + transcript`` right after the last citation of any of ``targets``."""
    ends = [m.end() for target in targets for m in citation_pattern(target).finditer(text)]
    if not ends:
        raise DocumentWriteError(f"[[{targets[0]}]] not found in document")
    position = max(ends)
    return f"{text[:position]}\n{transcript}{text[position:]}"


def sidecar_bytes(result: TranscriptResult) -> bytes:
    return json.dumps(result.to_dict(), ensure_ascii=False, separators=(",", ":")).encode("utf-8")


@dataclass
class FileOutcome:
    """What happened to one reference."""

    reference: AudioReference
    result: TranscriptResult | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TranscriptionRun:
    """Handle on a background fan-out started by Orchestrator.run."""

    def __init__(self, document: str, references: list[AudioReference]) -> None:
        self.document = document
        self.references = references
        self.outcomes: list[FileOutcome] = []  # completion order
        self._task: asyncio.Task[None] | None = None

    def start(self, coro: Coroutine[Any, Any, None]) -> None:
        self._task = asyncio.create_task(coro)

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    async def wait(self) -> list[FileOutcome]:
        """Wait until every reference has finished, successfully or not."""
        if self._task is not None:
            await self._task
        return self.outcomes

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()


class Orchestrator:
    """Runs transcriptions for notes of one host.

    ``backend`` overrides the backend named in the config. ``registry``
    tracks helper processes; the host calls ``shutdown()`` on quit. When
    ``document_lock`` is given, every note read-modify-write holds it.
    """

    def __init__(
        self,
        host: DocumentHost,
        backend: TranscriptionBackend | None = None,
        registry: ProcessRegistry | None = None,
        document_lock: asyncio.Lock | None = None,
    ) -> None:
        self.host = host
        self.backend = backend
        self.registry = registry if registry is not None else ProcessRegistry()
        self.document_lock = document_lock

    async def run(self, document: str, config: EngineConfig) -> TranscriptionRun:
        """Start transcribing every linked audio file of ``document``."""
        logger.debug("Transcribing all audio files in %s", document)
        self.host.notify(
            f"Transcribing all audio files in {self.host.name(document)}", START_NOTICE_MS
        )

        backend = self.backend or get_transcription_backend(config.backend)
        references = await collect(
            self.host, document, config.allowed_extensions, debug=config.debug
        )
        run = TranscriptionRun(document, references)
        run.start(self._fan_out(run, backend, config))
        return run

    def shutdown(self) -> int:
        """Terminate helper processes; returns how many were still running."""
        return self.registry.terminate_all()

    async def _fan_out(
        self, run: TranscriptionRun, backend: TranscriptionBackend, config: EngineConfig
    ) -> None:
        async with asyncio.TaskGroup() as group:
            for reference in run.references:
                group.create_task(self._transcribe_one(run, reference, backend, config))

    async def _transcribe_one(
        self,
        run: TranscriptionRun,
        reference: AudioReference,
        backend: TranscriptionBackend,
        config: EngineConfig,
    ) -> None:
        logger.debug("Transcribing %s", reference.path)
        outcome = FileOutcome(reference)
        try:
            audio = await self.host.read_binary(reference.path)
            outcome.result = await backend.transcribe(audio, config)
            logger.debug("%s: %s", reference.path, outcome.result.text)
            await self._integrate(reference, outcome.result, config)
        except (TranscriptionError, OSError) as exc:
            outcome.error = exc
            self._report_failure(reference, exc, config)
        except Exception as exc:
            logger.exception("Unexpected error transcribing %s", reference.path)
            outcome.error = exc
            self._report_failure(reference, exc, config)
        run.outcomes.append(outcome)

    async def _integrate(
        self, reference: AudioReference, result: TranscriptResult, config: EngineConfig
    ) -> None:
        targets = [await self.host.link_text(reference.path, reference.source), reference.link]
        transcript = format_transcript(result, config.timestamps)
        lock = self.document_lock if self.document_lock is not None else contextlib.nullcontext()
        try:
            async with lock:
                # Re-read at completion time; the note may have changed since dispatch.
                text = await self.host.read(reference.source)
                text = splice_transcript(text, targets, transcript)
                await self.host.modify(reference.source, text)
        except OSError as exc:
            raise DocumentWriteError(f"Could not update {reference.source}: {exc}") from exc

        try:
            await self.host.write_binary(reference.sidecar_path, sidecar_bytes(result))
        except OSError as exc:
            raise DocumentWriteError(
                f"Could not write {reference.sidecar_path}: {exc}"
            ) from exc
        logger.debug("Wrote transcript of %s to %s", reference.path, reference.sidecar_path)

    def _report_failure(
        self, reference: AudioReference, error: Exception, config: EngineConfig
    ) -> None:
        name = self.host.name(reference.path)
        logger.debug("Error transcribing %s: %r", reference.path, error)
        if config.debug:
            self.host.notify(f"Error transcribing file {name}: {error}")
        else:
            self.host.notify(f"Error transcribing file {name}, enable debug mode to see more")
