"""Interface for pluggable transcription backends."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from transcription.backends.types import TranscriptResult

if TYPE_CHECKING:
    from transcription.config import EngineConfig


@runtime_checkable
class TranscriptionBackend(Protocol):
    """Anything that can turn audio bytes into a TranscriptResult.

    Backends are picked by name from EngineConfig.backend (see
    transcription.backends.get_transcription_backend); they do not need
    to inherit from this class.
    """

    async def transcribe(self, audio: bytes, config: EngineConfig) -> TranscriptResult:
        """Transcribe one audio file.

        Args:
            audio: Raw file bytes, sent as-is. The backend owns this buffer.
            config: Settings for the current run.

        Returns:
            The complete TranscriptResult. Partial results are never returned.

        Raises:
            NetworkError: The service could not be reached.
            ServiceError: The service failed or returned an unusable body.
        """
        ...
