"""Response dataclasses for the Google Speech and Vertex AI REST APIs.

WHY: Both services return loosely-typed nested JSON. Parsing it in one
place, into typed objects, keeps the untyped dict-walking out of the
providers' request logic and entirely out of the engine.

HOW: Each dataclass mirrors one JSON object and has a from_dict factory.
``to_result()`` converts the parsed response into the engine's
normalized TranscriptionResult.

RULES:
- Durations arrive as "1.500s" strings (REST) or {"seconds", "nanos"}
  objects (gRPC-style JSON); parse_duration accepts both plus bare numbers
- Missing optional fields become None, never 0
- Only the top alternative of each result contributes words
- With diarization, Google repeats every word with speaker tags in the
  final result; when present, that list replaces the per-result words
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from speech_to_text.core.ir import Alternative, TranscriptionResult, WordSpan


def parse_duration(value: Any) -> float:
    """Convert a protobuf Duration in any JSON form to float seconds."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("s"):
            text = text[:-1]
        return float(text)
    if isinstance(value, dict):
        return float(value.get("seconds", 0) or 0) + float(value.get("nanos", 0) or 0) / 1e9
    raise ValueError(f"Unrecognised duration value: {value!r}")


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


@dataclass
class RecognizedWord:
    word: str
    start_s: float
    end_s: float
    confidence: Optional[float] = None
    speaker_tag: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> RecognizedWord:
        return cls(
            word=data.get("word", ""),
            start_s=parse_duration(data.get("startTime", data.get("startOffset"))),
            end_s=parse_duration(data.get("endTime", data.get("endOffset"))),
            confidence=_optional_float(data.get("confidence")),
            speaker_tag=_optional_int(data.get("speakerTag", data.get("speakerLabel"))),
        )

    def to_span(self) -> WordSpan:
        end = max(self.start_s, self.end_s)
        return WordSpan(
            text=self.word,
            start_s=self.start_s,
            end_s=end,
            confidence=self.confidence,
            speaker_tag=self.speaker_tag,
        )


@dataclass
class RecognitionAlternative:
    transcript: str
    confidence: Optional[float] = None
    words: List[RecognizedWord] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> RecognitionAlternative:
        return cls(
            transcript=data.get("transcript", ""),
            confidence=_optional_float(data.get("confidence")),
            words=[RecognizedWord.from_dict(w) for w in data.get("words", [])],
        )


@dataclass
class RecognitionResult:
    alternatives: List[RecognitionAlternative] = field(default_factory=list)
    language_code: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> RecognitionResult:
        return cls(
            alternatives=[RecognitionAlternative.from_dict(a) for a in data.get("alternatives", [])],
            language_code=data.get("languageCode") or None,
        )

    @property
    def top(self) -> Optional[RecognitionAlternative]:
        return self.alternatives[0] if self.alternatives else None


@dataclass
class RecognizeResponse:
    """Body of POST speech:recognize."""

    results: List[RecognitionResult] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> RecognizeResponse:
        return cls(results=[RecognitionResult.from_dict(r) for r in data.get("results", [])])

    def to_result(self) -> TranscriptionResult:
        if not self.results:
            return TranscriptionResult(transcript="")

        transcripts: List[str] = []
        words: List[WordSpan] = []
        diarized: List[WordSpan] = []
        confidences: List[float] = []
        language_code: Optional[str] = None

        for result in self.results:
            top = result.top
            if top is None:
                continue
            if language_code is None and result.language_code:
                language_code = result.language_code
            is_speaker_summary = (
                not top.transcript.strip()
                and top.words
                and all(w.speaker_tag is not None for w in top.words)
            )
            if is_speaker_summary:
                diarized = [w.to_span() for w in top.words]
                continue
            if top.transcript.strip():
                transcripts.append(top.transcript.strip())
            if top.confidence is not None:
                confidences.append(top.confidence)
            words.extend(w.to_span() for w in top.words)

        first = self.results[0]
        alternatives = [
            Alternative(
                transcript=alt.transcript,
                confidence=alt.confidence,
                words=[w.to_span() for w in alt.words],
            )
            for alt in first.alternatives[1:]
        ]

        return TranscriptionResult(
            transcript=" ".join(transcripts),
            words=diarized or words,
            confidence=sum(confidences) / len(confidences) if confidences else None,
            language_code=language_code,
            alternatives=alternatives,
        )


@dataclass
class VertexPrediction:
    """One element of ``predictions`` from a Vertex AI speech endpoint."""

    transcript: str
    confidence: Optional[float] = None
    words: List[RecognizedWord] = field(default_factory=list)
    alternatives: List[RecognitionAlternative] = field(default_factory=list)
    language_code: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> VertexPrediction:
        return cls(
            transcript=data.get("transcript", ""),
            confidence=_optional_float(data.get("confidence")),
            words=[RecognizedWord.from_dict(w) for w in data.get("words", [])],
            alternatives=[RecognitionAlternative.from_dict(a) for a in data.get("alternatives", [])],
            language_code=data.get("languageCode") or None,
        )


@dataclass
class PredictResponse:
    """Body of POST endpoints/{id}:predict."""

    predictions: List[VertexPrediction] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> PredictResponse:
        return cls(predictions=[VertexPrediction.from_dict(p) for p in data.get("predictions", [])])

    def to_result(self) -> TranscriptionResult:
        if not self.predictions:
            return TranscriptionResult(transcript="")
        prediction = self.predictions[0]
        return TranscriptionResult(
            transcript=prediction.transcript.strip(),
            words=[w.to_span() for w in prediction.words],
            confidence=prediction.confidence,
            language_code=prediction.language_code,
            alternatives=[
                Alternative(transcript=alt.transcript, confidence=alt.confidence)
                for alt in prediction.alternatives[1:]
            ],
        )
