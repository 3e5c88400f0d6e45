"""Split a duration into overlapping, bounded-length segments.

WHY: Synchronous recognition endpoints reject audio longer than about a
minute. Long files are cut into chunks that overlap slightly so words at
a boundary are heard whole by at least one request.

HOW: A cursor advances by ``chunk_length - overlap`` per step. Each
segment starts ``overlap`` seconds before the cursor (clamped at 0) and
runs for ``chunk_length`` seconds (clamped at the end of the audio).
The cursor is computed as ``k * step`` rather than accumulated so float
error does not drift over hundreds of chunks.

RULES:
- chunk_length > overlap >= 0 and total_duration > 0, else InvalidParameters
- total_duration <= chunk_length produces exactly one segment [0, total]
- Segments cover [0, total_duration] with no gaps
- The first segment has no pre-overlap; the last is clipped to total_duration
- No segment has zero or negative length
"""

from __future__ import annotations

import math
from typing import List

from speech_to_text.core.ir import SegmentDescriptor
from speech_to_text.errors import InvalidParameters


def _check(total_duration: float, chunk_length: float, overlap: float) -> None:
    for name, value in (
        ("total_duration", total_duration),
        ("chunk_length", chunk_length),
        ("overlap", overlap),
    ):
        if not math.isfinite(value):
            raise InvalidParameters(f"{name} must be a finite number, got {value!r}")
    if total_duration <= 0:
        raise InvalidParameters(f"total_duration must be > 0, got {total_duration}")
    if overlap < 0:
        raise InvalidParameters(f"overlap must be >= 0, got {overlap}")
    if chunk_length <= overlap:
        raise InvalidParameters(
            f"chunk_length ({chunk_length}) must be greater than overlap ({overlap})"
        )


def segment(
    total_duration: float,
    chunk_length: float,
    overlap: float = 0.0,
) -> List[SegmentDescriptor]:
    """Produce the ordered segment descriptors for an audio file.

    Args:
        total_duration: Length of the audio in seconds.
        chunk_length: Maximum length of one segment in seconds.
        overlap: Seconds shared with the previous segment.

    Returns:
        Descriptors with dense indices starting at 0.
    """
    _check(total_duration, chunk_length, overlap)

    if total_duration <= chunk_length:
        return [SegmentDescriptor(index=0, start_s=0.0, end_s=float(total_duration))]

    step = chunk_length - overlap
    segments: List[SegmentDescriptor] = []
    k = 0
    cursor = 0.0
    while cursor < total_duration:
        start = max(0.0, cursor - overlap)
        end = min(float(total_duration), start + chunk_length)
        segments.append(SegmentDescriptor(index=k, start_s=start, end_s=end))
        k += 1
        cursor = k * step

    return segments
