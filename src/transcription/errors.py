"""Exception hierarchy for the transcription pipeline."""

from __future__ import annotations


class TranscriptionError(RuntimeError):
    """Base class for all errors raised by this package."""


class ConfigurationError(TranscriptionError, ValueError):
    """Raised when stored settings cannot be turned into an EngineConfig."""


class LinkResolutionError(TranscriptionError):
    """Raised by a host when a link does not point at exactly one file."""

    def __init__(self, link: str, source: str, detail: str | None = None) -> None:
        self.link = link
        self.source = source
        message = f"Could not resolve {link!r} from {source!r}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class NetworkError(TranscriptionError):
    """The transcription service could not be reached (connect/timeout)."""


class ServiceError(TranscriptionError):
    """The service answered with a failure status or an unusable body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class DocumentWriteError(TranscriptionError):
    """Writing the transcript back into the host failed."""


__all__ = [
    "ConfigurationError",
    "DocumentWriteError",
    "LinkResolutionError",
    "NetworkError",
    "ServiceError",
    "TranscriptionError",
]
