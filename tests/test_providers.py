"""Tests for the Google Speech and Vertex AI providers.

HTTP is served by httpx.MockTransport and OAuth by a static token
source, so the request bodies, headers, URLs, and the mapping of
responses and status codes can be checked without any network.
"""

from __future__ import annotations

import asyncio
import base64
import json

import httpx
import pytest

from speech_to_text.config import DiarizationConfig, SpeechContext, TranscriptionConfig
from speech_to_text.core.ir import AudioSegment, SegmentDescriptor
from speech_to_text.errors import ConfigurationError, FatalError, TransientError
from speech_to_text.providers import (
    GoogleSpeechProvider,
    ProviderKind,
    VertexAISpeechProvider,
    create_provider,
)
from speech_to_text.providers.google_speech import build_recognition_config
from speech_to_text.providers.models import RecognizeResponse, parse_duration
from speech_to_text.providers.vertex_ai import build_parameters, mime_type_for


class StaticToken:
    async def token(self) -> str:
        return "test-token"


RECOGNIZE_BODY = {
    "results": [
        {
            "alternatives": [
                {
                    "transcript": "hello there",
                    "confidence": 0.9,
                    "words": [
                        {"word": "hello", "startTime": "0.100s", "endTime": "0.500s", "confidence": 0.95},
                        {"word": "there", "startTime": "0.600s", "endTime": "1s", "confidence": 0.85},
                    ],
                },
                {"transcript": "hello their", "confidence": 0.4},
            ],
            "languageCode": "en-us",
        },
        {
            "alternatives": [
                {
                    "transcript": " general kenobi",
                    "confidence": 0.7,
                    "words": [
                        {"word": "general", "startTime": "1.200s", "endTime": "1.600s"},
                        {"word": "kenobi", "startTime": "1.700s", "endTime": "2.200s"},
                    ],
                }
            ],
        },
    ]
}


def _segment(index=1, start=57.0, end=116.0, payload=b"wav-bytes"):
    return AudioSegment(descriptor=SegmentDescriptor(index=index, start_s=start, end_s=end), payload=payload)


def _google(settings, handler):
    return GoogleSpeechProvider(
        settings,
        token_source=StaticToken(),
        transport=httpx.MockTransport(handler),
    )


def _vertex(settings, handler):
    return VertexAISpeechProvider(
        settings,
        token_source=StaticToken(),
        transport=httpx.MockTransport(handler),
    )


async def _transcribe(provider, config, segment):
    async with provider:
        return await provider.transcribe_segment(segment, config)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class TestModels:

    @pytest.mark.parametrize("value,expected", [
        ("1.5s", 1.5),
        ("3s", 3.0),
        ({"seconds": "2", "nanos": 500000000}, 2.5),
        ({"nanos": 100000000}, 0.1),
        (4, 4.0),
        (None, 0.0),
    ])
    def test_parse_duration(self, value, expected):
        assert parse_duration(value) == pytest.approx(expected)

    def test_recognize_response_joins_results(self):
        result = RecognizeResponse.from_dict(RECOGNIZE_BODY).to_result()
        assert result.transcript == "hello there general kenobi"
        assert [w.text for w in result.words] == ["hello", "there", "general", "kenobi"]
        assert result.confidence == pytest.approx(0.8)
        assert result.language_code == "en-us"
        assert [a.transcript for a in result.alternatives] == ["hello their"]

    def test_empty_response(self):
        result = RecognizeResponse.from_dict({}).to_result()
        assert result.transcript == ""
        assert result.words == []
        assert result.confidence is None

    def test_diarized_summary_words_win(self):
        body = {
            "results": [
                {"alternatives": [{"transcript": "hi bob", "words": [
                    {"word": "hi", "startTime": "0s", "endTime": "0.3s"},
                    {"word": "bob", "startTime": "0.4s", "endTime": "0.8s"},
                ]}]},
                {"alternatives": [{"transcript": "", "words": [
                    {"word": "hi", "startTime": "0s", "endTime": "0.3s", "speakerTag": 1},
                    {"word": "bob", "startTime": "0.4s", "endTime": "0.8s", "speakerTag": 2},
                ]}]},
            ]
        }
        result = RecognizeResponse.from_dict(body).to_result()
        assert result.transcript == "hi bob"
        assert [w.speaker_tag for w in result.words] == [1, 2]


# ---------------------------------------------------------------------------
# Google Speech-to-Text
# ---------------------------------------------------------------------------


class TestGoogleSpeechRequest:

    def test_request_shape(self, settings):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["headers"] = request.headers
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=RECOGNIZE_BODY)

        config = TranscriptionConfig(
            language_code="en-US",
            speech_contexts=[SpeechContext(phrases=["kenobi"], boost=10)],
            diarization=DiarizationConfig(enable_speaker_diarization=True, min_speaker_count=2),
        )
        asyncio.run(_transcribe(_google(settings, handler), config, _segment()))

        assert captured["url"] == "https://speech.googleapis.com/v1/speech:recognize"
        assert captured["headers"]["authorization"] == "Bearer test-token"
        assert captured["headers"]["x-goog-user-project"] == "test-project"
        body = captured["body"]
        assert base64.b64decode(body["audio"]["content"]) == b"wav-bytes"
        assert body["config"]["languageCode"] == "en-US"
        assert body["config"]["enableWordTimeOffsets"] is True
        assert body["config"]["speechContexts"] == [{"phrases": ["kenobi"], "boost": 10}]
        assert body["config"]["diarizationConfig"]["enableSpeakerDiarization"] is True

    def test_segment_result_is_local_time(self, settings, config):
        result = asyncio.run(_transcribe(
            _google(settings, lambda r: httpx.Response(200, json=RECOGNIZE_BODY)),
            config,
            _segment(index=1),
        ))
        assert result.index == 1
        assert result.words[0].start_s == pytest.approx(0.1)

    def test_build_recognition_config_defaults(self, config):
        body = build_recognition_config(config)
        assert body["encoding"] == "LINEAR16"
        assert body["sampleRateHertz"] == 16000
        assert body["model"] == config.model
        assert "diarizationConfig" not in body

    def test_transcribe_whole_reads_file(self, settings, config, tmp_path):
        audio = tmp_path / "short.wav"
        audio.write_bytes(b"whole-file")
        seen = {}

        def handler(request):
            seen["content"] = json.loads(request.content)["audio"]["content"]
            return httpx.Response(200, json=RECOGNIZE_BODY)

        async def _run():
            async with _google(settings, handler) as provider:
                return await provider.transcribe_whole(audio, config)

        result = asyncio.run(_run())
        assert base64.b64decode(seen["content"]) == b"whole-file"
        assert result.transcript.startswith("hello there")


class TestGoogleSpeechErrors:

    @pytest.mark.parametrize("status", [429, 500, 503, 408])
    def test_retryable_status(self, settings, config, status):
        provider = _google(settings, lambda r: httpx.Response(status, json={"error": {"message": "slow down"}}))
        with pytest.raises(TransientError) as excinfo:
            asyncio.run(_transcribe(provider, config, _segment()))
        assert excinfo.value.status_code == status
        assert "slow down" in str(excinfo.value)

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_fatal_status(self, settings, config, status):
        provider = _google(settings, lambda r: httpx.Response(status, text="nope"))
        with pytest.raises(FatalError):
            asyncio.run(_transcribe(provider, config, _segment()))

    def test_network_error_is_transient(self, settings, config):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransientError):
            asyncio.run(_transcribe(_google(settings, handler), config, _segment()))

    def test_timeout_is_transient(self, settings, config):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransientError):
            asyncio.run(_transcribe(_google(settings, handler), config, _segment()))

    def test_non_json_body_is_fatal(self, settings, config):
        provider = _google(settings, lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(FatalError):
            asyncio.run(_transcribe(provider, config, _segment()))


class TestGoogleSpeechValidation:

    def test_missing_language(self, settings):
        provider = _google(settings, lambda r: httpx.Response(200, json={}))
        with pytest.raises(ConfigurationError):
            provider.validate(TranscriptionConfig(language_code=""))

    def test_missing_project(self, settings, config):
        settings.project_id = None
        provider = _google(settings, lambda r: httpx.Response(200, json={}))
        with pytest.raises(ConfigurationError, match="project ID"):
            provider.validate(config)

    def test_missing_credentials_without_token_source(self, settings, config):
        provider = GoogleSpeechProvider(settings)
        with pytest.raises(ConfigurationError, match="credentials"):
            provider.validate(config)

    def test_invalid_key_file(self, settings, config, tmp_path):
        key = tmp_path / "key.json"
        key.write_text(json.dumps({"type": "authorized_user"}))
        settings.credentials = str(key)
        with pytest.raises(ConfigurationError):
            GoogleSpeechProvider(settings).validate(config)

    def test_no_request_when_invalid(self, settings):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        provider = _google(settings, handler)
        with pytest.raises(ConfigurationError):
            asyncio.run(_transcribe(provider, TranscriptionConfig(language_code=""), _segment()))
        assert calls == []


# ---------------------------------------------------------------------------
# Vertex AI
# ---------------------------------------------------------------------------


PREDICT_BODY = {
    "predictions": [
        {
            "transcript": " こんにちは ",
            "confidence": 0.88,
            "languageCode": "ja-JP",
            "words": [{"word": "こんにちは", "startOffset": "0.2s", "endOffset": "0.9s"}],
        }
    ]
}


class TestVertexAI:

    def test_request_shape(self, settings):
        captured = {}

        def handler(request):
            captured["url"] = str(request.url)
            captured["headers"] = request.headers
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=PREDICT_BODY)

        config = TranscriptionConfig(language_code="ja-JP", encoding="FLAC")
        result = asyncio.run(_transcribe(_vertex(settings, handler), config, _segment(index=0, start=0.0, end=59.0)))

        assert captured["url"] == (
            "https://us-central1-aiplatform.googleapis.com/v1/projects/test-project"
            "/locations/us-central1/endpoints/1234567890:predict"
        )
        assert captured["headers"]["authorization"] == "Bearer test-token"
        instance = captured["body"]["instances"][0]
        assert instance["mimeType"] == "audio/flac"
        assert base64.b64decode(instance["content"]) == b"wav-bytes"
        assert captured["body"]["parameters"]["languageCode"] == "ja-JP"
        assert result.transcript == "こんにちは"
        assert result.words[0].start_s == pytest.approx(0.2)
        assert result.language_code == "ja-JP"

    def test_custom_api_endpoint(self, settings):
        settings.vertex_api_endpoint = "europe-west4-aiplatform.googleapis.com"
        provider = VertexAISpeechProvider(settings, token_source=StaticToken())
        assert provider.base_url == "https://europe-west4-aiplatform.googleapis.com/v1"

    def test_missing_endpoint_id(self, settings, config):
        settings.vertex_endpoint_id = None
        provider = _vertex(settings, lambda r: httpx.Response(200, json={}))
        with pytest.raises(ConfigurationError, match="endpoint"):
            provider.validate(config)

    def test_server_error_is_transient(self, settings, config):
        provider = _vertex(settings, lambda r: httpx.Response(502, text="bad gateway"))
        with pytest.raises(TransientError):
            asyncio.run(_transcribe(provider, config, _segment()))

    def test_build_parameters_diarization(self):
        params = build_parameters(TranscriptionConfig(
            language_code="en-US",
            diarization=DiarizationConfig(enable_speaker_diarization=True, max_speaker_count=4),
        ))
        assert params["enableSpeakerDiarization"] is True
        assert params["maxSpeakerCount"] == 4
        assert "minSpeakerCount" not in params

    def test_mime_types(self):
        assert mime_type_for("LINEAR16") == "audio/wav"
        assert mime_type_for("MP3") == "audio/mpeg"
        assert mime_type_for(None) == "audio/wav"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:

    def test_parse_known(self):
        assert ProviderKind.parse("vertex-ai") is ProviderKind.VERTEX_AI
        assert ProviderKind.parse(ProviderKind.GOOGLE_SPEECH) is ProviderKind.GOOGLE_SPEECH

    def test_parse_unknown(self):
        with pytest.raises(ConfigurationError, match="Unknown provider"):
            ProviderKind.parse("whisper")

    def test_create_provider(self, settings):
        assert isinstance(create_provider("google-speech", settings), GoogleSpeechProvider)
        assert isinstance(create_provider(ProviderKind.VERTEX_AI, settings), VertexAISpeechProvider)
