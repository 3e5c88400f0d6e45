"""Google Cloud Speech-to-Text v1 provider (REST, synchronous recognize).

WHY: speech:recognize is the cheapest, simplest Google endpoint, but it
only accepts about a minute of audio per request. The engine chunks long
files before calling it.

HOW: Uses httpx.AsyncClient for non-blocking HTTP with a Bearer token
minted by google-auth from the service-account key. Audio is sent inline
as base64. The JSON response is parsed by RecognizeResponse and
normalized into TranscriptionResult / SegmentResult.

RULES:
- Use as: async with GoogleSpeechProvider(settings) as provider: ...
- validate() runs before every request and makes no network calls
- Word times in segment results stay relative to the segment
- The x-goog-user-project header bills the configured project
"""

from __future__ import annotations

import asyncio
import base64
import logging
from pathlib import Path
from typing import Optional, Protocol

import httpx

from speech_to_text.auth import AccessTokenSource, validate_service_account_key
from speech_to_text.config import GoogleCloudSettings, TranscriptionConfig
from speech_to_text.core.ir import AudioSegment, SegmentResult, TranscriptionResult
from speech_to_text.errors import ConfigurationError, FatalError
from speech_to_text.providers.base import TranscriptionProvider
from speech_to_text.providers.http import DEFAULT_TIMEOUT, post_json
from speech_to_text.providers.models import RecognizeResponse

logger = logging.getLogger(__name__)

SPEECH_BASE_URL = "https://speech.googleapis.com/v1"


class TokenSource(Protocol):
    async def token(self) -> str: ...


def build_recognition_config(config: TranscriptionConfig) -> dict:
    """Translate a TranscriptionConfig into the REST RecognitionConfig object."""
    body: dict = {
        "encoding": config.encoding or "LINEAR16",
        "sampleRateHertz": config.sample_rate_hz or 16000,
        "languageCode": config.language_code,
        "enableWordTimeOffsets": config.enable_word_time_offsets,
        "enableAutomaticPunctuation": config.enable_automatic_punctuation,
        "enableWordConfidence": config.enable_word_confidence,
        "maxAlternatives": config.max_alternatives or 1,
        "profanityFilter": config.profanity_filter,
        "useEnhanced": config.use_enhanced,
    }
    if config.model:
        body["model"] = config.model
    if config.speech_contexts:
        body["speechContexts"] = [ctx.to_dict() for ctx in config.speech_contexts]
    if config.diarization is not None:
        body["diarizationConfig"] = config.diarization.to_dict()
    if config.metadata:
        body["metadata"] = dict(config.metadata)
    return body


class GoogleSpeechProvider(TranscriptionProvider):
    """Async client for Google Cloud Speech-to-Text v1 ``speech:recognize``."""

    def __init__(
        self,
        settings: GoogleCloudSettings,
        base_url: Optional[str] = None,
        token_source: Optional[TokenSource] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._base_url = (base_url or SPEECH_BASE_URL).rstrip("/")
        self._token_source = token_source
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._key_checked = False

    @property
    def name(self) -> str:
        return "Google Cloud Speech-to-Text"

    def validate(self, config: TranscriptionConfig) -> None:
        if not config.language_code:
            raise ConfigurationError("Language code is required for Google Speech-to-Text")
        if not self._settings.project_id:
            raise ConfigurationError(
                "Google Cloud project ID is not configured. "
                "Set GOOGLE_CLOUD_PROJECT_ID environment variable."
            )
        if self._token_source is not None:
            return
        if not self._settings.credentials:
            raise ConfigurationError(
                "Google Cloud credentials are not configured. "
                "Set GOOGLE_APPLICATION_CREDENTIALS environment variable."
            )
        if not self._key_checked:
            validate_service_account_key(self._settings.credentials)
            self._key_checked = True

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=DEFAULT_TIMEOUT,
                transport=self._transport,
            )
        return self._client

    def _ensure_token_source(self) -> TokenSource:
        if self._token_source is None:
            self._token_source = AccessTokenSource(str(self._settings.credentials))
        return self._token_source

    async def _recognize(self, content: bytes, config: TranscriptionConfig) -> TranscriptionResult:
        self.validate(config)
        client = self._ensure_client()
        token = await self._ensure_token_source().token()
        headers = {"Authorization": f"Bearer {token}"}
        if self._settings.project_id:
            headers["x-goog-user-project"] = self._settings.project_id

        body = {
            "config": build_recognition_config(config),
            "audio": {"content": base64.b64encode(content).decode("ascii")},
        }
        data = await post_json(client, "google-speech", "/speech:recognize", body, headers)
        try:
            return RecognizeResponse.from_dict(data).to_result()
        except (KeyError, TypeError, ValueError) as exc:
            raise FatalError("google-speech", f"malformed response: {exc}") from exc

    async def transcribe_whole(
        self,
        audio_path: Path,
        config: TranscriptionConfig,
    ) -> TranscriptionResult:
        self.validate(config)
        content = await asyncio.to_thread(Path(audio_path).read_bytes)
        return await self._recognize(content, config)

    async def transcribe_segment(
        self,
        segment: AudioSegment,
        config: TranscriptionConfig,
    ) -> SegmentResult:
        result = await self._recognize(segment.payload, config)
        return result.as_segment(segment.index)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
