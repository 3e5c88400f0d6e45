"""Bounded dispatcher — run the transcription port over every segment.

WHY: Firing every chunk of a two-hour file at once trips rate limits;
running them one by one takes forever. Fixed-size batches bound the
number of outstanding requests while still overlapping network waits.

HOW: Segments are sliced into batches of ``max_concurrency``. Each batch
is awaited with asyncio.gather over per-segment wrappers that catch
their own exceptions, so a failed request never cancels its siblings.
Batch k+1 starts only after every attempt in batch k settled. A short
pause between batches smooths bursts.

RULES:
- Peak in-flight transcription calls <= max_concurrency
- Success: the offset-shifted SegmentResult goes into table[index]
- Failure: failures[index] = the exception; the slot stays absent
- Results land by index, never by completion order
- No pause after the last batch
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from speech_to_text.core.ir import AudioSegment, ResultsTable
from speech_to_text.core.merger import shift_to_global
from speech_to_text.core.progress import ProgressKind, ProgressReporter
from speech_to_text.errors import InvalidParameters, is_retryable

if TYPE_CHECKING:
    from speech_to_text.config import TranscriptionConfig
    from speech_to_text.providers.base import TranscriptionProvider

logger = logging.getLogger(__name__)


@dataclass
class DispatchOutcome:
    """Results table plus the failures recorded during the sweep."""

    table: ResultsTable
    failures: Dict[int, BaseException] = field(default_factory=dict)

    @property
    def failed_indices(self) -> List[int]:
        return sorted(self.failures)


async def attempt_segment(
    segment: AudioSegment,
    provider: TranscriptionProvider,
    config: TranscriptionConfig,
    table: ResultsTable,
) -> None:
    """Transcribe one segment and write its globally-timed result.

    Raises whatever the provider raised; callers decide what a failure means.
    """
    result = await provider.transcribe_segment(segment, config)
    if result.index != segment.index:
        logger.debug(
            "provider returned index %d for segment %d; rewriting",
            result.index,
            segment.index,
        )
        result.index = segment.index
    table.put(segment.index, shift_to_global(result, segment.descriptor))


async def dispatch(
    segments: Sequence[AudioSegment],
    provider: TranscriptionProvider,
    config: TranscriptionConfig,
    max_concurrency: int,
    batch_pause_s: float = 0.1,
    progress: Optional[ProgressReporter] = None,
    table: Optional[ResultsTable] = None,
) -> DispatchOutcome:
    """Transcribe ``segments`` in sequential batches of ``max_concurrency``.

    Args:
        segments: Audio segments with dense indices 0..N-1.
        provider: The transcription port implementation.
        config: Request configuration shared by every segment.
        max_concurrency: Batch size, i.e. the in-flight request ceiling.
        batch_pause_s: Sleep between batches.
        progress: Optional progress channel.
        table: Table to fill; a fresh one of size len(segments) by default.

    Returns:
        DispatchOutcome with the filled table and the failure map.
    """
    if max_concurrency < 1:
        raise InvalidParameters(f"max_concurrency must be >= 1, got {max_concurrency}")

    reporter = progress or ProgressReporter()
    outcome = DispatchOutcome(table=table if table is not None else ResultsTable(len(segments)))
    total = len(segments)
    total_batches = math.ceil(total / max_concurrency) if total else 0

    async def _run_one(segment: AudioSegment) -> None:
        started = time.monotonic()
        try:
            await attempt_segment(segment, provider, config, outcome.table)
        except Exception as exc:
            outcome.failures[segment.index] = exc
            logger.warning(
                "Chunk %d failed (%s): %s",
                segment.index + 1,
                "retryable" if is_retryable(exc) else "fatal",
                exc,
            )
            reporter.emit(
                ProgressKind.SEGMENT_FAILED,
                segment_index=segment.index,
                total_segments=total,
                error=str(exc),
            )
            return
        duration = time.monotonic() - started
        logger.info("Chunk %d completed in %.1fs", segment.index + 1, duration)
        reporter.emit(
            ProgressKind.SEGMENT_COMPLETED,
            segment_index=segment.index,
            total_segments=total,
            duration_s=duration,
        )

    for batch_number, start in enumerate(range(0, total, max_concurrency), start=1):
        batch = segments[start:start + max_concurrency]
        reporter.emit(
            ProgressKind.BATCH_STARTED,
            batch_number=batch_number,
            total_batches=total_batches,
            first_index=batch[0].index,
            last_index=batch[-1].index,
            total_segments=total,
        )
        await asyncio.gather(*(_run_one(segment) for segment in batch))

        if start + max_concurrency < total and batch_pause_s > 0:
            await asyncio.sleep(batch_pause_s)

    return outcome
