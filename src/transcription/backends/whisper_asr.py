"""Backend for the whisper-asr-webservice HTTP API.

https://github.com/ahmetoner/whisper-asr-webservice

Equivalent to:
    curl -X POST '{url}/asr?task=transcribe&language=en&output=json' --form 'audio_file=@recording.webm'

The recognition language is always "en"; it is not derived from the note.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from transcription.backends.multipart import MultipartPayload, build_audio_payload
from transcription.backends.types import TranscriptResult
from transcription.errors import NetworkError, ServiceError

if TYPE_CHECKING:
    from transcription.config import EngineConfig

logger = logging.getLogger(__name__)

ASR_QUERY = {"task": "transcribe", "language": "en", "output": "json"}


def asr_url(base_url: str) -> str:
    """Build the request target for a service base URL."""
    query = "&".join(f"{key}={value}" for key, value in ASR_QUERY.items())
    return f"{base_url}/asr?{query}"


class WhisperASRBackend:
    """Sends one multipart POST per file and parses the JSON reply.

    An httpx.AsyncClient can be injected (tests use httpx.MockTransport);
    otherwise a short-lived client is opened per call.
    """

    name = "whisper_asr"

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client

    async def transcribe(self, audio: bytes, config: EngineConfig) -> TranscriptResult:
        payload = build_audio_payload(audio)
        url = asr_url(config.whisper_asr_url)
        logger.debug("POST %s (%d bytes, boundary %s)", url, len(payload.body), payload.boundary)

        if self._client is not None:
            response = await self._post(self._client, url, payload, config)
        else:
            async with httpx.AsyncClient() as client:
                response = await self._post(client, url, payload, config)

        return self._parse(response)

    @staticmethod
    async def _post(
        client: httpx.AsyncClient,
        url: str,
        payload: MultipartPayload,
        config: EngineConfig,
    ) -> httpx.Response:
        try:
            return await client.post(
                url,
                content=payload.body,
                headers={"Content-Type": payload.content_type},
                timeout=config.request_timeout,
            )
        except httpx.TransportError as exc:
            raise NetworkError(f"Could not reach {config.whisper_asr_url}: {exc!r}") from exc
        except httpx.RequestError as exc:
            raise ServiceError(f"Request to {config.whisper_asr_url} failed: {exc!r}") from exc

    @staticmethod
    def _parse(response: httpx.Response) -> TranscriptResult:
        logger.debug("Response %s: %d bytes", response.status_code, len(response.content))
        if not response.is_success:
            raise ServiceError(
                f"Transcription service returned HTTP {response.status_code}: "
                f"{response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise ServiceError(
                f"Transcription service returned invalid JSON: {exc}",
                status_code=response.status_code,
            ) from exc
        return TranscriptResult.from_dict(data)
