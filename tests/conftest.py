"""Pytest configuration and fixtures."""

import pytest

from fakes import make_segment
from transcription.backends.types import TranscriptResult


@pytest.fixture
def sample_response():
    """Whisper ASR webservice JSON reply with two segments."""
    return {
        "text": "Hello world",
        "segments": [
            make_segment(0, "Hello", 0.0, 1.5),
            make_segment(1, " world ", 1.5, 3.0),
        ],
        "language": "en",
    }


@pytest.fixture
def sample_result(sample_response):
    return TranscriptResult.from_dict(sample_response)
