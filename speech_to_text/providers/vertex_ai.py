"""Vertex AI provider — speech models deployed behind a prediction endpoint.

WHY: Some teams serve a tuned speech model on Vertex AI instead of using
the stock Speech-to-Text API. The engine should drive it the same way.

HOW: POSTs ``{"instances": [...], "parameters": {...}}`` to
``projects/{p}/locations/{l}/endpoints/{id}:predict`` with httpx and a
google-auth Bearer token, then parses ``predictions`` with
PredictResponse.

RULES:
- Requires project, location, and VERTEX_AI_SPEECH_ENDPOINT_ID
- The API host is {location}-aiplatform.googleapis.com unless VERTEX_AI_ENDPOINT overrides it
- Word times in segment results stay relative to the segment
"""

from __future__ import annotations

import asyncio
import base64
import logging
from pathlib import Path
from typing import Optional

import httpx

from speech_to_text.auth import AccessTokenSource, validate_service_account_key
from speech_to_text.config import GoogleCloudSettings, TranscriptionConfig
from speech_to_text.core.ir import AudioSegment, SegmentResult, TranscriptionResult
from speech_to_text.errors import ConfigurationError, FatalError
from speech_to_text.providers.base import TranscriptionProvider
from speech_to_text.providers.google_speech import TokenSource
from speech_to_text.providers.http import DEFAULT_TIMEOUT, post_json
from speech_to_text.providers.models import PredictResponse

logger = logging.getLogger(__name__)

_MIME_TYPES = {
    "ENCODING_UNSPECIFIED": "audio/wav",
    "LINEAR16": "audio/wav",
    "FLAC": "audio/flac",
    "MULAW": "audio/basic",
    "AMR": "audio/amr",
    "AMR_WB": "audio/amr-wb",
    "OGG_OPUS": "audio/ogg",
    "SPEEX_WITH_HEADER_BYTE": "audio/speex",
    "MP3": "audio/mpeg",
    "WEBM_OPUS": "audio/webm",
}


def mime_type_for(encoding: Optional[str]) -> str:
    return _MIME_TYPES.get(encoding or "LINEAR16", "audio/wav")


def build_parameters(config: TranscriptionConfig) -> dict:
    params: dict = {
        "languageCode": config.language_code,
        "maxAlternatives": config.max_alternatives or 1,
        "enableWordTimeOffsets": bool(config.enable_word_time_offsets),
        "enableWordConfidence": bool(config.enable_word_confidence),
        "enableAutomaticPunctuation": bool(config.enable_automatic_punctuation),
        "profanityFilter": bool(config.profanity_filter),
    }
    if config.model:
        params["model"] = config.model
    if config.speech_contexts:
        params["speechContexts"] = [ctx.to_dict() for ctx in config.speech_contexts]
    if config.diarization is not None:
        params["enableSpeakerDiarization"] = config.diarization.enable_speaker_diarization
        if config.diarization.min_speaker_count:
            params["minSpeakerCount"] = config.diarization.min_speaker_count
        if config.diarization.max_speaker_count:
            params["maxSpeakerCount"] = config.diarization.max_speaker_count
    return params


class VertexAISpeechProvider(TranscriptionProvider):
    """Async client for a Vertex AI speech prediction endpoint."""

    def __init__(
        self,
        settings: GoogleCloudSettings,
        token_source: Optional[TokenSource] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._token_source = token_source
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._key_checked = False

    @property
    def name(self) -> str:
        return "Vertex AI Speech"

    @property
    def base_url(self) -> str:
        host = self._settings.vertex_api_endpoint or (
            f"{self._settings.vertex_location}-aiplatform.googleapis.com"
        )
        if not host.startswith(("http://", "https://")):
            host = f"https://{host}"
        return f"{host.rstrip('/')}/v1"

    @property
    def endpoint_path(self) -> str:
        s = self._settings
        return (
            f"/projects/{s.vertex_project_id}/locations/{s.vertex_location}"
            f"/endpoints/{s.vertex_endpoint_id}:predict"
        )

    def validate(self, config: TranscriptionConfig) -> None:
        if not config.language_code:
            raise ConfigurationError("Language code is required for Vertex AI Speech")
        if not self._settings.vertex_project_id:
            raise ConfigurationError(
                "Vertex AI project is not configured. Set VERTEX_AI_PROJECT_ID "
                "or GOOGLE_CLOUD_PROJECT_ID environment variable."
            )
        if not self._settings.vertex_endpoint_id:
            raise ConfigurationError(
                "Vertex AI Speech endpoint ID is not configured. "
                "Set VERTEX_AI_SPEECH_ENDPOINT_ID environment variable."
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
                base_url=self.base_url,
                timeout=DEFAULT_TIMEOUT,
                transport=self._transport,
            )
        return self._client

    async def _predict(self, content: bytes, config: TranscriptionConfig) -> TranscriptionResult:
        self.validate(config)
        if self._token_source is None:
            self._token_source = AccessTokenSource(str(self._settings.credentials))
        token = await self._token_source.token()

        body = {
            "instances": [
                {
                    "content": base64.b64encode(content).decode("ascii"),
                    "mimeType": mime_type_for(config.encoding),
                }
            ],
            "parameters": build_parameters(config),
        }
        data = await post_json(
            self._ensure_client(),
            "vertex-ai",
            self.endpoint_path,
            body,
            {"Authorization": f"Bearer {token}"},
        )
        try:
            return PredictResponse.from_dict(data).to_result()
        except (KeyError, TypeError, ValueError) as exc:
            raise FatalError("vertex-ai", f"malformed response: {exc}") from exc

    async def transcribe_whole(
        self,
        audio_path: Path,
        config: TranscriptionConfig,
    ) -> TranscriptionResult:
        self.validate(config)
        content = await asyncio.to_thread(Path(audio_path).read_bytes)
        return await self._predict(content, config)

    async def transcribe_segment(
        self,
        segment: AudioSegment,
        config: TranscriptionConfig,
    ) -> SegmentResult:
        result = await self._predict(segment.payload, config)
        return result.as_segment(segment.index)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
