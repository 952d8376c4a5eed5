"""Transcribe audio files linked from markdown notes."""

__version__ = "0.1.0"
