"""Configuration defaults, request/processing structs, and .env loading.

WHY: Centralizes every configurable value so it is easy to find and
override. Defaults are plain module constants; the structs that carry a
run's settings are explicit dataclasses passed to whoever needs them, so
there is no process-wide config object to reach into.

HOW: python-dotenv loads the .env file on import. Constants read their
overrides with os.getenv. TranscriptionConfig and ProcessingOptions are
built by the CLI (or by library callers) and threaded through the
pipeline. load_config_file() overlays a JSON config file on the defaults.

RULES:
- Credentials are read from the environment, never hardcoded
- ProcessingOptions.validate() raises InvalidParameters for bad chunking input
- Config files have two optional sections: "transcription" and "processing"
- Keys in config files are camelCase, matching the template from init-config
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv

from speech_to_text.errors import ConfigurationError, InvalidParameters

# Load .env from the working directory
load_dotenv()

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_PROVIDER = os.getenv("SPEECH_PROVIDER", "google-speech")
DEFAULT_LANGUAGE_CODE = os.getenv("SPEECH_LANGUAGE_CODE", "ja-JP")
DEFAULT_MODEL = os.getenv("SPEECH_MODEL", "latest_long")
DEFAULT_CHUNK_DURATION_S = float(os.getenv("SPEECH_CHUNK_DURATION", "59"))
DEFAULT_OVERLAP_S = float(os.getenv("SPEECH_CHUNK_OVERLAP", "1"))
DEFAULT_MAX_CONCURRENT = int(os.getenv("SPEECH_MAX_CONCURRENT", "3"))
DEFAULT_MAX_RETRIES = int(os.getenv("SPEECH_MAX_RETRIES", "3"))
DEFAULT_RETRY_BASE_DELAY_S = 1.0
DEFAULT_BATCH_PAUSE_S = 0.1
DEFAULT_SAMPLE_RATE_HZ = 16000
DEFAULT_LOCATION = "us-central1"

# ---------------------------------------------------------------------------
# Supported input files
# ---------------------------------------------------------------------------

AUDIO_FORMATS: set[str] = {".wav", ".mp3", ".flac", ".m4a", ".aac", ".ogg"}
VIDEO_FORMATS: set[str] = {".mp4", ".avi", ".mov", ".mkv", ".wmv", ".flv", ".webm"}
SUPPORTED_INPUT_FORMATS: set[str] = AUDIO_FORMATS | VIDEO_FORMATS

AUDIO_ENCODINGS: Tuple[str, ...] = (
    "ENCODING_UNSPECIFIED",
    "LINEAR16",
    "FLAC",
    "MULAW",
    "AMR",
    "AMR_WB",
    "OGG_OPUS",
    "SPEEX_WITH_HEADER_BYTE",
    "MP3",
    "WEBM_OPUS",
)


# ---------------------------------------------------------------------------
# Config-file values
# ---------------------------------------------------------------------------

_KIND_NAMES = {
    bool: "true or false",
    int: "an integer",
    float: "a number",
    str: "a string",
    dict: "an object",
    list: "a list",
}


def _coerce(key: str, value: Any, kind: type, optional: bool = False) -> Any:
    """Convert a config-file value to ``kind`` or raise ConfigurationError.

    Numbers may be given as JSON numbers or numeric strings ("3", "59.5").
    Booleans must be real JSON booleans; "false" is rejected rather than
    read as truthy.
    """
    if value is None and optional:
        return None
    if kind in (int, float):
        if not isinstance(value, bool):
            try:
                number = float(value)
            except (TypeError, ValueError):
                number = None
            if number is not None and (kind is float or number.is_integer()):
                return kind(number)
    elif isinstance(value, kind):
        return value
    raise ConfigurationError(
        f"Invalid value for '{key}': expected {_KIND_NAMES[kind]}, got {value!r}"
    )


# ---------------------------------------------------------------------------
# Request configuration
# ---------------------------------------------------------------------------


@dataclass
class SpeechContext:
    """Phrase hints sent with every recognition request."""

    phrases: List[str]
    boost: Optional[float] = None

    def to_dict(self) -> dict:
        data: dict = {"phrases": list(self.phrases)}
        if self.boost is not None:
            data["boost"] = self.boost
        return data


@dataclass
class DiarizationConfig:
    enable_speaker_diarization: bool = True
    min_speaker_count: Optional[int] = None
    max_speaker_count: Optional[int] = None

    def to_dict(self) -> dict:
        data: dict = {"enableSpeakerDiarization": self.enable_speaker_diarization}
        if self.min_speaker_count is not None:
            data["minSpeakerCount"] = self.min_speaker_count
        if self.max_speaker_count is not None:
            data["maxSpeakerCount"] = self.max_speaker_count
        return data


@dataclass
class TranscriptionConfig:
    """Per-request recognition settings shared by every segment of a run.

    RULES:
    - language_code is a BCP-47 tag (e.g. "ja-JP"); providers reject an empty one
    - encoding / sample_rate_hz are overwritten by the pipeline after audio prep
    - metadata is passed through to the provider untouched
    """

    language_code: str = DEFAULT_LANGUAGE_CODE
    encoding: str = "LINEAR16"
    sample_rate_hz: int = DEFAULT_SAMPLE_RATE_HZ
    enable_automatic_punctuation: bool = True
    enable_word_time_offsets: bool = True
    enable_word_confidence: bool = True
    model: Optional[str] = DEFAULT_MODEL
    use_enhanced: bool = True
    max_alternatives: int = 1
    profanity_filter: bool = False
    speech_contexts: List[SpeechContext] = field(default_factory=list)
    diarization: Optional[DiarizationConfig] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict, base: Optional[TranscriptionConfig] = None) -> TranscriptionConfig:
        """Overlay a camelCase config-file section on ``base`` (or the defaults).

        Raises:
            ConfigurationError: on an unknown encoding or a value of the wrong type.
        """
        cfg = base or cls()
        updates: Dict[str, Any] = {}
        simple = {
            "languageCode": ("language_code", str, False),
            "encoding": ("encoding", str, False),
            "sampleRateHertz": ("sample_rate_hz", int, False),
            "enableAutomaticPunctuation": ("enable_automatic_punctuation", bool, False),
            "enableWordTimeOffsets": ("enable_word_time_offsets", bool, False),
            "enableWordConfidence": ("enable_word_confidence", bool, False),
            "model": ("model", str, True),
            "useEnhanced": ("use_enhanced", bool, False),
            "maxAlternatives": ("max_alternatives", int, False),
            "profanityFilter": ("profanity_filter", bool, False),
            "metadata": ("metadata", dict, False),
        }
        for key, (attr, kind, optional) in simple.items():
            if key in data:
                updates[attr] = _coerce(key, data[key], kind, optional)

        if "encoding" in updates and updates["encoding"] not in AUDIO_ENCODINGS:
            raise ConfigurationError(f"Unknown audio encoding: {updates['encoding']}")

        if "speechContexts" in data:
            contexts = []
            for ctx in _coerce("speechContexts", data["speechContexts"], list):
                ctx = _coerce("speechContexts[]", ctx, dict)
                phrases = _coerce("phrases", ctx.get("phrases", []), list)
                contexts.append(SpeechContext(
                    phrases=[_coerce("phrases[]", p, str) for p in phrases],
                    boost=_coerce("boost", ctx.get("boost"), float, optional=True),
                ))
            updates["speech_contexts"] = contexts

        if "diarizationConfig" in data:
            dc = _coerce("diarizationConfig", data["diarizationConfig"], dict, optional=True) or {}
            updates["diarization"] = DiarizationConfig(
                enable_speaker_diarization=_coerce(
                    "enableSpeakerDiarization", dc.get("enableSpeakerDiarization", True), bool
                ),
                min_speaker_count=_coerce("minSpeakerCount", dc.get("minSpeakerCount"), int, optional=True),
                max_speaker_count=_coerce("maxSpeakerCount", dc.get("maxSpeakerCount"), int, optional=True),
            )

        return replace(cfg, **updates)


# ---------------------------------------------------------------------------
# Processing options
# ---------------------------------------------------------------------------


@dataclass
class ProcessingOptions:
    """Settings for how a file is chunked, dispatched, and written out."""

    chunk_duration_s: float = DEFAULT_CHUNK_DURATION_S
    overlap_s: float = DEFAULT_OVERLAP_S
    max_concurrent_chunks: int = DEFAULT_MAX_CONCURRENT
    retry_failed_chunks: bool = True
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_base_delay_s: float = DEFAULT_RETRY_BASE_DELAY_S
    batch_pause_s: float = DEFAULT_BATCH_PAUSE_S
    output_path: Optional[str] = None
    output_format: Optional[str] = None
    temp_dir: Optional[str] = None
    verbose: bool = False

    def validate(self) -> None:
        if self.chunk_duration_s <= 0:
            raise InvalidParameters(f"Chunk duration must be > 0, got {self.chunk_duration_s}")
        if self.overlap_s < 0:
            raise InvalidParameters(f"Overlap must be >= 0, got {self.overlap_s}")
        if self.chunk_duration_s <= self.overlap_s:
            raise InvalidParameters(
                f"Chunk duration ({self.chunk_duration_s}s) must be greater "
                f"than overlap ({self.overlap_s}s)"
            )
        if self.max_concurrent_chunks < 1:
            raise InvalidParameters(
                f"Max concurrent chunks must be >= 1, got {self.max_concurrent_chunks}"
            )
        if self.max_retries < 0:
            raise InvalidParameters(f"Max retries must be >= 0, got {self.max_retries}")
        if self.retry_base_delay_s < 0 or self.batch_pause_s < 0:
            raise InvalidParameters("Delays must be >= 0")

    @classmethod
    def from_dict(cls, data: dict, base: Optional[ProcessingOptions] = None) -> ProcessingOptions:
        opts = base or cls()
        mapping = {
            "chunkDuration": ("chunk_duration_s", float, False),
            "overlap": ("overlap_s", float, False),
            "maxConcurrentChunks": ("max_concurrent_chunks", int, False),
            "retryFailedChunks": ("retry_failed_chunks", bool, False),
            "maxRetries": ("max_retries", int, False),
            "retryBaseDelay": ("retry_base_delay_s", float, False),
            "batchPause": ("batch_pause_s", float, False),
            "outputFormat": ("output_format", str, True),
            "outputPath": ("output_path", str, True),
            "tempDir": ("temp_dir", str, True),
            "verbose": ("verbose", bool, False),
        }
        updates = {
            attr: _coerce(key, data[key], kind, optional)
            for key, (attr, kind, optional) in mapping.items()
            if key in data
        }
        return replace(opts, **updates)


# ---------------------------------------------------------------------------
# Cloud settings
# ---------------------------------------------------------------------------


@dataclass
class GoogleCloudSettings:
    """Project, location, and credential settings for the Google providers."""

    project_id: Optional[str] = None
    location: str = DEFAULT_LOCATION
    credentials: Optional[str] = None
    vertex_project_id: Optional[str] = None
    vertex_location: str = DEFAULT_LOCATION
    vertex_api_endpoint: Optional[str] = None
    vertex_endpoint_id: Optional[str] = None

    @classmethod
    def from_env(cls) -> GoogleCloudSettings:
        project = os.getenv("GOOGLE_CLOUD_PROJECT_ID") or os.getenv("GCLOUD_PROJECT")
        return cls(
            project_id=project,
            location=os.getenv("GOOGLE_CLOUD_LOCATION", DEFAULT_LOCATION),
            credentials=os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or None,
            vertex_project_id=os.getenv("VERTEX_AI_PROJECT_ID") or project,
            vertex_location=os.getenv("VERTEX_AI_LOCATION", DEFAULT_LOCATION),
            vertex_api_endpoint=os.getenv("VERTEX_AI_ENDPOINT") or None,
            vertex_endpoint_id=os.getenv("VERTEX_AI_SPEECH_ENDPOINT_ID") or None,
        )


# ---------------------------------------------------------------------------
# Config files
# ---------------------------------------------------------------------------


def load_config_file(
    path: str | Path,
    transcription: Optional[TranscriptionConfig] = None,
    processing: Optional[ProcessingOptions] = None,
) -> Tuple[TranscriptionConfig, ProcessingOptions]:
    """Read a JSON config file and overlay it on the given settings.

    Raises:
        ConfigurationError: if the file is missing, not JSON, malformed, or
            holds a value of the wrong type.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Failed to load config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")

    sections = {}
    for name in ("transcription", "processing"):
        section = data.get(name) or {}
        if not isinstance(section, dict):
            raise ConfigurationError(f"Config file {path}: \"{name}\" must be a JSON object")
        sections[name] = section

    try:
        cfg = TranscriptionConfig.from_dict(sections["transcription"], transcription)
        opts = ProcessingOptions.from_dict(sections["processing"], processing)
    except ConfigurationError as exc:
        raise ConfigurationError(f"Config file {path}: {exc}") from exc
    return cfg, opts


def config_template() -> dict:
    """The sample configuration written by ``speech-to-text init-config``."""
    return {
        "transcription": {
            "languageCode": DEFAULT_LANGUAGE_CODE,
            "enableAutomaticPunctuation": True,
            "enableWordTimeOffsets": True,
            "enableWordConfidence": True,
            "model": DEFAULT_MODEL,
            "useEnhanced": True,
            "speechContexts": [{"phrases": ["固有名詞1", "固有名詞2"], "boost": 10}],
            "diarizationConfig": {
                "enableSpeakerDiarization": True,
                "minSpeakerCount": 2,
                "maxSpeakerCount": 6,
            },
        },
        "processing": {
            "chunkDuration": 59,
            "overlap": 1,
            "maxConcurrentChunks": 3,
            "retryFailedChunks": True,
            "maxRetries": 3,
            "outputFormat": "txt",
            "verbose": False,
        },
    }
