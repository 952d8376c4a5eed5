"""
Engine configuration - persisted key/value settings and their typed view.

Settings are stored as a flat JSON object using the camelCase keys below.
Missing keys fall back to DEFAULT_SETTINGS, extra keys are preserved on save.

Environment overrides (applied by load_settings, never saved back):
    TRANSCRIPTION_ASR_URL: Whisper ASR webservice base URL
    TRANSCRIPTION_BACKEND: Backend name (default: "whisper_asr")
    TRANSCRIPTION_DEBUG: "1"/"true"/"yes" enables debug mode
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from transcription.errors import ConfigurationError

DEFAULT_SETTINGS: dict[str, Any] = {
    "timestamps": False,
    "transcribeFileExtensions": "mp3,wav,webm",
    "whisperASRUrl": "http://localhost:9000",
    "debug": False,
    "backend": "whisper_asr",
    "requestTimeout": 600.0,
}

# settings key -> EngineConfig attribute
_FIELD_FOR_KEY = {
    "timestamps": "timestamps",
    "transcribeFileExtensions": "transcribe_file_extensions",
    "whisperASRUrl": "whisper_asr_url",
    "debug": "debug",
    "backend": "backend",
    "requestTimeout": "request_timeout",
}

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class EngineConfig:
    """Read-only configuration for one transcription run."""

    timestamps: bool = False
    transcribe_file_extensions: str = "mp3,wav,webm"
    whisper_asr_url: str = "http://localhost:9000"
    debug: bool = False
    backend: str = "whisper_asr"
    request_timeout: float | None = 600.0

    @property
    def allowed_extensions(self) -> frozenset[str]:
        """Extensions split on "," exactly as stored (no whitespace trimming)."""
        return frozenset(self.transcribe_file_extensions.split(","))

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any] | None = None) -> EngineConfig:
        """Build a config from stored settings layered over DEFAULT_SETTINGS."""
        merged = {**DEFAULT_SETTINGS, **(settings or {})}

        for key in ("timestamps", "debug"):
            if not isinstance(merged[key], bool):
                raise ConfigurationError(f"{key} must be a boolean, got {merged[key]!r}")
        for key in ("transcribeFileExtensions", "whisperASRUrl", "backend"):
            if not isinstance(merged[key], str):
                raise ConfigurationError(f"{key} must be a string, got {merged[key]!r}")

        timeout = merged["requestTimeout"]
        if timeout is not None and (
            isinstance(timeout, bool) or not isinstance(timeout, int | float) or timeout <= 0
        ):
            raise ConfigurationError(f"requestTimeout must be a positive number, got {timeout!r}")

        return cls(
            timestamps=merged["timestamps"],
            transcribe_file_extensions=merged["transcribeFileExtensions"],
            whisper_asr_url=merged["whisperASRUrl"],
            debug=merged["debug"],
            backend=merged["backend"],
            request_timeout=None if timeout is None else float(timeout),
        )

    def to_settings(self) -> dict[str, Any]:
        """Return the persisted camelCase representation."""
        return {key: getattr(self, attr) for key, attr in _FIELD_FOR_KEY.items()}


def apply_env_overrides(config: EngineConfig) -> EngineConfig:
    """Layer TRANSCRIPTION_* environment variables over a config."""
    changes: dict[str, Any] = {}
    url = os.getenv("TRANSCRIPTION_ASR_URL")
    if url:
        changes["whisper_asr_url"] = url
    backend = os.getenv("TRANSCRIPTION_BACKEND")
    if backend:
        changes["backend"] = backend
    debug = os.getenv("TRANSCRIPTION_DEBUG")
    if debug:
        changes["debug"] = debug.strip().lower() in _TRUTHY
    return replace(config, **changes) if changes else config


def read_settings(path: str | Path | None) -> EngineConfig:
    """Read the settings file (if any) exactly as stored, without environment overrides."""
    stored: dict[str, Any] = {}
    if path is not None and Path(path).is_file():
        try:
            stored = json.loads(Path(path).read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Settings file {path} is not valid JSON: {exc}") from exc
        if not isinstance(stored, dict):
            raise ConfigurationError(f"Settings file {path} must contain a JSON object")
    return EngineConfig.from_settings(stored)


def load_settings(path: str | Path | None) -> EngineConfig:
    """Runtime config: the stored settings with environment overrides applied."""
    return apply_env_overrides(read_settings(path))


def save_settings(config: EngineConfig, path: str | Path) -> None:
    """Persist a config, keeping unrelated keys already present in the file."""
    target = Path(path)
    existing: dict[str, Any] = {}
    if target.is_file():
        try:
            loaded = json.loads(target.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            loaded = {}
        if isinstance(loaded, dict):
            existing = loaded
    existing.update(config.to_settings())
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(existing, indent=2) + "\n", encoding="utf-8")


def update_settings(config: EngineConfig, **changes: Any) -> EngineConfig:
    """The settings-update path: validate camelCase changes into a new config."""
    unknown = set(changes) - set(_FIELD_FOR_KEY)
    if unknown:
        raise ConfigurationError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
    return EngineConfig.from_settings({**config.to_settings(), **changes})
