"""Transcription port — the one capability the engine needs from a service.

WHY: The engine must not care which cloud service recognises the audio.
It only needs "transcribe this file", "transcribe this segment", and
"tell me up front if the configuration cannot work".

HOW: TranscriptionProvider is an ABC. Concrete providers own their HTTP
client and their response parsing and hand back the normalized
TranscriptionResult / SegmentResult shapes from core.ir. Providers are
async context managers so their connection pools are closed.

RULES:
- transcribe_segment returns segment-relative timestamps; the engine shifts them
- validate() raises ConfigurationError before any network call
- Network/timeout/429/5xx failures raise TransientError
- Requests that will never succeed raise FatalError
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from speech_to_text.config import TranscriptionConfig
from speech_to_text.core.ir import AudioSegment, SegmentResult, TranscriptionResult


class TranscriptionProvider(ABC):
    """Abstract base for all transcription service adapters."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name, e.g. 'Google Cloud Speech-to-Text'."""

    @abstractmethod
    def validate(self, config: TranscriptionConfig) -> None:
        """Raise ConfigurationError if ``config`` cannot be used."""

    @abstractmethod
    async def transcribe_whole(
        self,
        audio_path: Path,
        config: TranscriptionConfig,
    ) -> TranscriptionResult:
        """Transcribe a short file in a single request."""

    @abstractmethod
    async def transcribe_segment(
        self,
        segment: AudioSegment,
        config: TranscriptionConfig,
    ) -> SegmentResult:
        """Transcribe one chunk; word times stay relative to the chunk."""

    async def close(self) -> None:
        return None

    async def __aenter__(self) -> TranscriptionProvider:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self.close()
