"""Progress events emitted by the engine.

WHY: The CLI wants to show which batch is running, which chunks finished,
and which are being retried. The engine must not wait on the terminal to
do that, and it must not know how the UI draws anything.

HOW: The engine pushes ProgressEvent objects into an unbounded
asyncio.Queue with ``put_nowait``. A consumer (the CLI) drains the queue
in its own task. Every event is also written to the module logger at
DEBUG so library users without a consumer still get a trace.

RULES:
- emit() never blocks and never raises
- ProgressReporter() with no queue is a valid no-op channel
- close() enqueues a single None sentinel so consumers can stop
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


class ProgressKind(str, enum.Enum):
    PIPELINE_STARTED = "pipeline_started"
    BATCH_STARTED = "batch_started"
    SEGMENT_COMPLETED = "segment_completed"
    SEGMENT_FAILED = "segment_failed"
    RETRY_STARTED = "retry_started"
    RETRY_ATTEMPT = "retry_attempt"
    RETRY_SUCCEEDED = "retry_succeeded"
    RETRY_EXHAUSTED = "retry_exhausted"
    PIPELINE_FINISHED = "pipeline_finished"


@dataclass(frozen=True)
class ProgressEvent:
    """One observation from the engine.

    Only the fields that make sense for ``kind`` are set; the rest stay None.
    ``elapsed_s`` is seconds since the reporter was created.
    """

    kind: ProgressKind
    elapsed_s: float
    segment_index: Optional[int] = None
    batch_number: Optional[int] = None
    total_batches: Optional[int] = None
    first_index: Optional[int] = None
    last_index: Optional[int] = None
    total_segments: Optional[int] = None
    attempt: Optional[int] = None
    max_attempts: Optional[int] = None
    duration_s: Optional[float] = None
    error: Optional[str] = None
    succeeded: Optional[int] = None
    failed: Optional[int] = None


class ProgressReporter:
    """Non-blocking progress channel."""

    def __init__(self, queue: Optional[asyncio.Queue] = None) -> None:
        self._queue = queue
        self._started = time.monotonic()

    @property
    def queue(self) -> Optional[asyncio.Queue]:
        return self._queue

    def elapsed(self) -> float:
        return time.monotonic() - self._started

    def emit(self, kind: ProgressKind, **fields) -> ProgressEvent:
        event = ProgressEvent(kind=kind, elapsed_s=self.elapsed(), **fields)
        logger.debug("progress %s", event)
        if self._queue is not None:
            try:
                self._queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.debug("progress queue full, dropped %s", kind.value)
        return event

    def close(self) -> None:
        if self._queue is not None:
            try:
                self._queue.put_nowait(None)
            except asyncio.QueueFull:
                logger.debug("progress queue full, consumer will not see close sentinel")
