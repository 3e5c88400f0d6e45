"""Retry coordinator — second pass over chunks that failed the sweep.

WHY: Remote speech services drop the occasional request (timeouts, 429s,
5xx). Most of those succeed on a later try, and losing a minute of
transcript to one blip is a bad trade.

HOW: After the dispatcher's sweep, each retryable failed index gets up to
``max_retries`` further attempts, one index at a time. Before attempt n
(0-based) the coordinator sleeps ``base_delay_s * 2**n``. Success writes
the shifted result into the table and stops; a FatalError ends that
index early. Nothing is raised: outcomes are logged, emitted as progress
events, and the last error per index is handed back through ``errors``.

RULES:
- Indices are retried independently and sequentially (failures are rare)
- Delay grows 1x, 2x, 4x ... base_delay_s; only max_retries bounds it
- FatalError (and config errors) are never retried
- A ConfigurationError during a retry ends the pass; no later attempt can fix it
- Exhausted indices stay absent; the merge simply omits them
- Returns the indices that are still absent after the pass
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Dict, List, Mapping, MutableMapping, Optional, Sequence

from speech_to_text.core.dispatcher import attempt_segment
from speech_to_text.core.ir import AudioSegment, ResultsTable
from speech_to_text.core.progress import ProgressKind, ProgressReporter
from speech_to_text.errors import ConfigurationError, is_retryable

if TYPE_CHECKING:
    from speech_to_text.config import TranscriptionConfig
    from speech_to_text.providers.base import TranscriptionProvider

logger = logging.getLogger(__name__)


def backoff_delay(attempt: int, base_delay_s: float = 1.0) -> float:
    """Seconds to wait before retry attempt ``attempt`` (0-based)."""
    return base_delay_s * (2 ** attempt)


async def retry_failed(
    segments: Sequence[AudioSegment],
    failures: Mapping[int, BaseException],
    provider: TranscriptionProvider,
    config: TranscriptionConfig,
    table: ResultsTable,
    max_retries: int,
    base_delay_s: float = 1.0,
    progress: Optional[ProgressReporter] = None,
    errors: Optional[MutableMapping[int, BaseException]] = None,
) -> List[int]:
    """Re-attempt failed segments in place.

    Args:
        segments: All segments of the run, addressable by index.
        failures: Index -> exception from the initial sweep.
        provider: The transcription port implementation.
        config: Request configuration shared by every segment.
        table: The run's results table; updated in place.
        max_retries: Attempts per failed index.
        base_delay_s: Backoff unit.
        progress: Optional progress channel.
        errors: If given, receives the last error of every index that is
            still absent after the pass; recovered indices are removed.

    Returns:
        Sorted indices that remain without a result.
    """
    reporter = progress or ProgressReporter()
    by_index: Dict[int, AudioSegment] = {s.index: s for s in segments}
    last_errors: Dict[int, BaseException] = dict(failures)
    recovered: List[int] = []

    retryable = [i for i in sorted(failures) if is_retryable(failures[i])]
    skipped = [i for i in sorted(failures) if not is_retryable(failures[i])]
    for index in skipped:
        logger.error("Chunk %d failed permanently: %s", index + 1, failures[index])
        reporter.emit(ProgressKind.RETRY_EXHAUSTED, segment_index=index, attempt=0,
                      max_attempts=max_retries, error=str(failures[index]))

    if retryable and max_retries > 0:
        logger.warning("Retrying %d failed chunks...", len(retryable))
        reporter.emit(ProgressKind.RETRY_STARTED, total_segments=len(retryable),
                      max_attempts=max_retries)

    for index in retryable:
        segment = by_index.get(index)
        if segment is None:
            logger.error("No audio for failed chunk %d; cannot retry", index + 1)
            continue

        succeeded = False
        for attempt in range(max_retries):
            delay = backoff_delay(attempt, base_delay_s)
            logger.info(
                "Retrying chunk %d (attempt %d/%d) after %.1fs",
                index + 1, attempt + 1, max_retries, delay,
            )
            reporter.emit(ProgressKind.RETRY_ATTEMPT, segment_index=index,
                          attempt=attempt + 1, max_attempts=max_retries, duration_s=delay)
            if delay > 0:
                await asyncio.sleep(delay)
            try:
                await attempt_segment(segment, provider, config, table)
            except Exception as exc:
                last_errors[index] = exc
                logger.warning("Chunk %d retry %d failed: %s", index + 1, attempt + 1, exc)
                if not is_retryable(exc):
                    break
                continue
            succeeded = True
            recovered.append(index)
            logger.info("Chunk %d succeeded on retry %d", index + 1, attempt + 1)
            reporter.emit(ProgressKind.RETRY_SUCCEEDED, segment_index=index,
                          attempt=attempt + 1, max_attempts=max_retries)
            break

        if not succeeded:
            logger.error(
                "Chunk %d failed after %d retries: %s", index + 1, max_retries, last_errors[index]
            )
            reporter.emit(ProgressKind.RETRY_EXHAUSTED, segment_index=index, attempt=max_retries,
                          max_attempts=max_retries, error=str(last_errors[index]))
            if isinstance(last_errors[index], ConfigurationError):
                logger.error("Configuration error; abandoning the remaining retries")
                break

    for index in recovered:
        del last_errors[index]
    if errors is not None:
        for index in recovered:
            errors.pop(index, None)
        errors.update(last_errors)
    return sorted(last_errors)
