"""Intermediate representation for segmented transcription.

WHY: Every stage of the engine (segmenter, dispatcher, retry, merger) and
every formatter exchanges the same handful of shapes. Typed dataclasses
make the contract explicit and keep provider-specific JSON out of the core.

HOW: Seven types:
  SegmentDescriptor   — one time slice of the source audio
  AudioSegment        — a descriptor plus its encoded audio bytes
  WordSpan            — one recognised word with timing
  SegmentResult       — what a provider returns for one segment
  TranscriptionResult — what a provider returns for a whole file
  ResultsTable        — index-addressed slots for segment results
  MergedTranscript    — the final, time-ordered transcript

RULES:
- All times are float seconds
- SegmentDescriptor, AudioSegment and WordSpan are immutable
- ResultsTable slots are written whole (never partially); last write wins
- MergedTranscript.words are in the global audio timeline, ascending
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Iterator, Optional

from speech_to_text.errors import InvalidParameters


@dataclass(frozen=True)
class SegmentDescriptor:
    """One bounded slice of the source audio.

    RULES:
    - index: 0-based, dense across a run
    - start_s >= 0, end_s > start_s
    """

    index: int
    start_s: float
    end_s: float

    @property
    def duration_s(self) -> float:
        return self.end_s - self.start_s


@dataclass(frozen=True)
class AudioSegment:
    """Encoded audio for one segment, read fully into memory."""

    descriptor: SegmentDescriptor
    payload: bytes

    @property
    def index(self) -> int:
        return self.descriptor.index


@dataclass(frozen=True)
class WordSpan:
    """A single recognised word.

    Times are relative to whatever the owning result is relative to:
    segment-local when returned by a provider, global after the engine
    has shifted it.
    """

    text: str
    start_s: float
    end_s: float
    confidence: Optional[float] = None
    speaker_tag: Optional[int] = None

    def shifted(self, offset_s: float) -> WordSpan:
        """Return a copy moved forward by ``offset_s`` seconds."""
        return replace(self, start_s=self.start_s + offset_s, end_s=self.end_s + offset_s)

    def to_dict(self) -> dict:
        data: dict = {"word": self.text, "startTime": self.start_s, "endTime": self.end_s}
        if self.confidence is not None:
            data["confidence"] = self.confidence
        if self.speaker_tag is not None:
            data["speakerTag"] = self.speaker_tag
        return data


@dataclass
class Alternative:
    """A lower-ranked recognition hypothesis."""

    transcript: str
    confidence: Optional[float] = None
    words: list[WordSpan] = field(default_factory=list)


@dataclass
class SegmentResult:
    """Provider output for one segment.

    RULES:
    - index matches the SegmentDescriptor it was produced from
    - confidence is 0..1 or None when the service did not report one
    """

    index: int
    transcript: str
    words: list[WordSpan] = field(default_factory=list)
    confidence: Optional[float] = None
    language_code: Optional[str] = None


@dataclass
class TranscriptionResult:
    """Provider output for a whole (unsegmented) file."""

    transcript: str
    words: list[WordSpan] = field(default_factory=list)
    confidence: Optional[float] = None
    language_code: Optional[str] = None
    alternatives: list[Alternative] = field(default_factory=list)

    def as_segment(self, index: int) -> SegmentResult:
        """View this result as the result of segment ``index``."""
        return SegmentResult(
            index=index,
            transcript=self.transcript,
            words=list(self.words),
            confidence=self.confidence,
            language_code=self.language_code,
        )


@dataclass
class MergedTranscript:
    """The final transcript handed to formatters.

    RULES:
    - words are global-time and sorted ascending by start_s
    - confidence is the mean of contributing segment confidences, or None
    - language_code is the first one reported in segment order, or None
    - failed_segments lists indices whose audio is missing from the output
    """

    transcript: str
    words: list[WordSpan] = field(default_factory=list)
    confidence: Optional[float] = None
    language_code: Optional[str] = None
    segment_count: int = 1
    failed_segments: tuple[int, ...] = ()

    @property
    def succeeded_count(self) -> int:
        return self.segment_count - len(self.failed_segments)

    @classmethod
    def from_result(cls, result: TranscriptionResult) -> MergedTranscript:
        """Wrap a whole-file result (short-audio path) as a merged transcript."""
        return cls(
            transcript=result.transcript,
            words=sorted(result.words, key=lambda w: w.start_s),
            confidence=result.confidence,
            language_code=result.language_code,
            segment_count=1,
            failed_segments=(),
        )

    def to_dict(self) -> dict:
        data: dict = {
            "transcript": self.transcript,
            "words": [w.to_dict() for w in self.words],
            "confidence": self.confidence,
            "languageCode": self.language_code,
            "segmentCount": self.segment_count,
            "failedSegments": list(self.failed_segments),
        }
        return data


class ResultsTable:
    """Fixed-size, index-addressed storage for segment results.

    WHY: Segments complete in arbitrary order and some are retried later.
    Addressing by index (never by completion order) is what makes the
    merge deterministic.

    HOW: A list of N slots, all None at construction. ``put`` replaces a
    slot with a complete SegmentResult under a lock.

    RULES:
    - Size is fixed at construction; indices outside 0..N-1 are rejected
    - A slot is either a full SegmentResult or None
    - A later successful write to the same index replaces the earlier one
    """

    def __init__(self, size: int) -> None:
        if size < 0:
            raise InvalidParameters(f"ResultsTable size must be >= 0, got {size}")
        self._slots: list[Optional[SegmentResult]] = [None] * size
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._slots)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._slots):
            raise IndexError(f"segment index {index} out of range 0..{len(self._slots) - 1}")

    def put(self, index: int, result: SegmentResult) -> None:
        self._check_index(index)
        if result.index != index:
            raise ValueError(f"result for segment {result.index} written to slot {index}")
        with self._lock:
            self._slots[index] = result

    def get(self, index: int) -> Optional[SegmentResult]:
        self._check_index(index)
        with self._lock:
            return self._slots[index]

    def present(self) -> Iterator[tuple[int, SegmentResult]]:
        """Yield (index, result) for filled slots in ascending index order."""
        with self._lock:
            snapshot = list(self._slots)
        for index, result in enumerate(snapshot):
            if result is not None:
                yield index, result

    def missing(self) -> list[int]:
        with self._lock:
            return [i for i, slot in enumerate(self._slots) if slot is None]
