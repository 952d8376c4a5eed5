"""Pluggable transcription backend factory.

Backends are selected by name from EngineConfig.backend. Only the selected
backend is imported, so dependencies of other backends stay optional.

Backends:
    "whisper_asr" (default): whisper-asr-webservice over HTTP
"""

from __future__ import annotations

from transcription.backends.base import TranscriptionBackend
from transcription.backends.types import TranscriptResult, TranscriptSegment
from transcription.errors import ConfigurationError

BACKENDS = ("whisper_asr",)


def get_transcription_backend(name: str = "whisper_asr", **kwargs) -> TranscriptionBackend:
    """Create the backend registered under ``name``.

    Keyword arguments are passed to the backend constructor (for example an
    ``httpx.AsyncClient`` as ``client``).
    """
    if name == "whisper_asr":
        from transcription.backends.whisper_asr import WhisperASRBackend

        return WhisperASRBackend(**kwargs)
    raise ConfigurationError(f"Unknown transcription backend: {name}")


__all__ = [
    "BACKENDS",
    "TranscriptResult",
    "TranscriptSegment",
    "TranscriptionBackend",
    "get_transcription_backend",
]
