"""Recombine per-segment results into one time-ordered transcript.

WHY: Segments are transcribed independently, complete in any order, and
some never complete at all. The merge is where that disorder turns back
into a single deterministic transcript.

HOW: shift_to_global() moves a segment's words onto the file timeline
by adding the segment's start offset; the dispatcher and the retry pass
call it before writing to the ResultsTable, so the table only ever holds
global times. merge() then walks the present slots in index order,
joins text, pools words, sorts them, and averages confidence.

RULES:
- Zero present slots -> AllSegmentsFailed
- Transcripts joined with a single space; empty ones add no separator
- Words sorted by start_s; ties keep segment order, then provider order
- Confidence: mean over segments that reported one, else None
- language_code: first present segment (by index) that reports one
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from speech_to_text.core.ir import (
    MergedTranscript,
    ResultsTable,
    SegmentDescriptor,
    SegmentResult,
    WordSpan,
)
from speech_to_text.errors import AllSegmentsFailed


def shift_to_global(result: SegmentResult, descriptor: SegmentDescriptor) -> SegmentResult:
    """Return a copy of ``result`` with word times moved by the segment offset."""
    if result.index != descriptor.index:
        raise ValueError(
            f"result for segment {result.index} cannot be shifted by descriptor {descriptor.index}"
        )
    offset = descriptor.start_s
    return SegmentResult(
        index=result.index,
        transcript=result.transcript,
        words=[w.shifted(offset) for w in result.words],
        confidence=result.confidence,
        language_code=result.language_code,
    )


def merge(table: ResultsTable) -> MergedTranscript:
    """Merge every present slot of ``table`` into a MergedTranscript."""
    present = list(table.present())
    if not present:
        raise AllSegmentsFailed(len(table))

    texts: List[str] = []
    keyed: List[Tuple[float, int, int, WordSpan]] = []
    confidences: List[float] = []
    language_code: Optional[str] = None

    for index, result in present:
        text = (result.transcript or "").strip()
        if text:
            texts.append(text)
        for position, word in enumerate(result.words):
            keyed.append((word.start_s, index, position, word))
        if result.confidence is not None:
            confidences.append(result.confidence)
        if language_code is None and result.language_code:
            language_code = result.language_code

    keyed.sort(key=lambda item: item[:3])

    return MergedTranscript(
        transcript=" ".join(texts),
        words=[item[3] for item in keyed],
        confidence=sum(confidences) / len(confidences) if confidences else None,
        language_code=language_code,
        segment_count=len(table),
        failed_segments=tuple(table.missing()),
    )
