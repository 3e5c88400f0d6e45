"""Shared test fixtures for the speech_to_text test suite.

WHY: The engine tests (dispatcher, retry, pipeline) all need a
transcription provider whose behaviour per segment can be scripted:
succeed with some text, fail a few times then succeed, fail forever.
Centralizing it here keeps the tests about the engine, not the fake.

HOW: ScriptedProvider implements TranscriptionProvider. Each segment
index maps to a list of outcomes consumed one per call; an outcome is a
SegmentResult-producing string or an exception instance. It records
every call and the peak number of concurrent calls.

RULES:
- Word times returned by the fake are segment-local, like a real service
- An index with no script succeeds with "chunk-<index>"
- The last outcome of a script repeats once the list is exhausted
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import pytest

from speech_to_text.config import GoogleCloudSettings, ProcessingOptions, TranscriptionConfig
from speech_to_text.core.ir import (
    AudioSegment,
    SegmentDescriptor,
    SegmentResult,
    TranscriptionResult,
    WordSpan,
)
from speech_to_text.core.segmenter import segment
from speech_to_text.providers.base import TranscriptionProvider

Outcome = Union[str, BaseException]


class ScriptedProvider(TranscriptionProvider):
    """In-memory provider with per-index scripted outcomes."""

    def __init__(
        self,
        script: Optional[Dict[int, Sequence[Outcome]]] = None,
        delay_s: float = 0.0,
        whole: Optional[Outcome] = None,
    ) -> None:
        self.script: Dict[int, List[Outcome]] = {k: list(v) for k, v in (script or {}).items()}
        self.delay_s = delay_s
        self.whole = whole
        self.calls: List[int] = []
        self.whole_calls: List[Path] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self.closed = False

    @property
    def name(self) -> str:
        return "Scripted"

    def validate(self, config: TranscriptionConfig) -> None:
        return None

    def _next(self, index: int) -> Outcome:
        outcomes = self.script.get(index)
        if not outcomes:
            return "chunk-{}".format(index)
        if len(outcomes) > 1:
            return outcomes.pop(0)
        return outcomes[0]

    async def transcribe_whole(self, audio_path: Path, config: TranscriptionConfig) -> TranscriptionResult:
        self.whole_calls.append(Path(audio_path))
        outcome = self.whole if self.whole is not None else "whole file"
        if isinstance(outcome, BaseException):
            raise outcome
        return TranscriptionResult(
            transcript=outcome,
            words=[WordSpan(text=outcome, start_s=0.0, end_s=1.0, confidence=0.9)],
            confidence=0.9,
            language_code=config.language_code,
        )

    async def transcribe_segment(self, segment: AudioSegment, config: TranscriptionConfig) -> SegmentResult:
        self.calls.append(segment.index)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
            outcome = self._next(segment.index)
            if isinstance(outcome, BaseException):
                raise outcome
            return SegmentResult(
                index=segment.index,
                transcript=outcome,
                words=[WordSpan(text=outcome, start_s=0.5, end_s=1.0, confidence=0.8)],
                confidence=0.8,
                language_code=config.language_code,
            )
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        self.closed = True


def make_segments(total: float, chunk: float, overlap: float = 0.0) -> List[AudioSegment]:
    """AudioSegments with placeholder payloads for a planned layout."""
    return [
        AudioSegment(descriptor=d, payload=b"audio-%d" % d.index)
        for d in segment(total, chunk, overlap)
    ]


def make_result(index: int, text: str, words: Sequence[WordSpan] = (), confidence: Optional[float] = 0.9) -> SegmentResult:
    return SegmentResult(
        index=index,
        transcript=text,
        words=list(words),
        confidence=confidence,
        language_code="en-US",
    )


def descriptor(index: int, start: float, end: float) -> SegmentDescriptor:
    return SegmentDescriptor(index=index, start_s=start, end_s=end)


@pytest.fixture
def config() -> TranscriptionConfig:
    return TranscriptionConfig(language_code="en-US")


@pytest.fixture
def fast_options() -> ProcessingOptions:
    """Processing options with every sleep disabled."""
    return ProcessingOptions(
        chunk_duration_s=59,
        overlap_s=1,
        max_concurrent_chunks=3,
        max_retries=3,
        retry_base_delay_s=0.0,
        batch_pause_s=0.0,
    )


@pytest.fixture
def settings() -> GoogleCloudSettings:
    return GoogleCloudSettings(
        project_id="test-project",
        location="us-central1",
        credentials=None,
        vertex_project_id="test-project",
        vertex_location="us-central1",
        vertex_endpoint_id="1234567890",
    )


@pytest.fixture(autouse=True)
def _clean_google_env(monkeypatch):
    """Keep a developer's real Google settings out of the tests."""
    for name in (
        "GOOGLE_CLOUD_PROJECT_ID",
        "GCLOUD_PROJECT",
        "GOOGLE_CLOUD_LOCATION",
        "GOOGLE_APPLICATION_CREDENTIALS",
        "VERTEX_AI_PROJECT_ID",
        "VERTEX_AI_LOCATION",
        "VERTEX_AI_ENDPOINT",
        "VERTEX_AI_SPEECH_ENDPOINT_ID",
    ):
        monkeypatch.delenv(name, raising=False)
