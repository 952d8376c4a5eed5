"""Shared data types for backend interfaces."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from transcription.errors import ServiceError

_SEGMENT_NUMBERS = (
    "start",
    "end",
    "temperature",
    "avg_logprob",
    "compression_ratio",
    "no_speech_prob",
)


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class TranscriptSegment:
    """A single timed span as returned by the recognition service."""

    id: int
    seek: int
    start: float  # seconds from the start of the audio file
    end: float
    text: str
    tokens: tuple[int, ...] = ()
    temperature: float = 0.0
    avg_logprob: float = 0.0
    compression_ratio: float = 0.0
    no_speech_prob: float = 0.0

    @classmethod
    def from_dict(cls, data: Any) -> TranscriptSegment:
        """Validate one segment object; any mismatch raises ServiceError."""
        if not isinstance(data, dict):
            raise ServiceError(f"segment must be an object, got {type(data).__name__}")
        required = ("id", "seek", "text", "tokens", *_SEGMENT_NUMBERS)
        missing = [key for key in required if key not in data]
        if missing:
            raise ServiceError(f"segment is missing field(s): {', '.join(missing)}")
        if not _is_int(data["id"]) or not _is_int(data["seek"]):
            raise ServiceError("segment id and seek must be integers")
        if not isinstance(data["text"], str):
            raise ServiceError("segment text must be a string")
        tokens = data["tokens"]
        if not isinstance(tokens, list) or not all(_is_int(token) for token in tokens):
            raise ServiceError("segment tokens must be a list of integers")
        for key in _SEGMENT_NUMBERS:
            if not _is_number(data[key]):
                raise ServiceError(f"segment {key} must be a number")

        return cls(
            id=data["id"],
            seek=data["seek"],
            start=data["start"],
            end=data["end"],
            text=data["text"],
            tokens=tuple(tokens),
            temperature=data["temperature"],
            avg_logprob=data["avg_logprob"],
            compression_ratio=data["compression_ratio"],
            no_speech_prob=data["no_speech_prob"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "seek": self.seek,
            "start": self.start,
            "end": self.end,
            "text": self.text,
            "tokens": list(self.tokens),
            "temperature": self.temperature,
            "avg_logprob": self.avg_logprob,
            "compression_ratio": self.compression_ratio,
            "no_speech_prob": self.no_speech_prob,
        }


@dataclass(frozen=True)
class TranscriptResult:
    """Result of one transcription call. Segments keep service order."""

    text: str
    segments: tuple[TranscriptSegment, ...] = field(default_factory=tuple)
    language: str = "unknown"

    @classmethod
    def from_dict(cls, data: Any) -> TranscriptResult:
        """Parse the service's JSON document; any mismatch raises ServiceError."""
        if not isinstance(data, dict):
            raise ServiceError(f"response must be a JSON object, got {type(data).__name__}")
        for key in ("text", "language", "segments"):
            if key not in data:
                raise ServiceError(f"response is missing field: {key}")
        if not isinstance(data["text"], str):
            raise ServiceError("response text must be a string")
        if not isinstance(data["language"], str):
            raise ServiceError("response language must be a string")
        if not isinstance(data["segments"], list):
            raise ServiceError("response segments must be a list")

        return cls(
            text=data["text"],
            segments=tuple(TranscriptSegment.from_dict(item) for item in data["segments"]),
            language=data["language"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "segments": [segment.to_dict() for segment in self.segments],
            "language": self.language,
        }
