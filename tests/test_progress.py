"""Tests for the progress channel."""

from __future__ import annotations

import asyncio

from speech_to_text.core.progress import ProgressKind, ProgressReporter


class TestProgressReporter:

    def test_emit_without_queue_returns_event(self):
        event = ProgressReporter().emit(ProgressKind.SEGMENT_COMPLETED, segment_index=2)
        assert event.kind is ProgressKind.SEGMENT_COMPLETED
        assert event.segment_index == 2
        assert event.batch_number is None
        assert event.elapsed_s >= 0

    def test_events_delivered_in_order(self):
        queue: asyncio.Queue = asyncio.Queue()
        reporter = ProgressReporter(queue)
        reporter.emit(ProgressKind.PIPELINE_STARTED, total_segments=3)
        reporter.emit(ProgressKind.PIPELINE_FINISHED, succeeded=3, failed=0)
        reporter.close()

        kinds = [queue.get_nowait(), queue.get_nowait(), queue.get_nowait()]
        assert kinds[0].kind is ProgressKind.PIPELINE_STARTED
        assert kinds[1].kind is ProgressKind.PIPELINE_FINISHED
        assert kinds[2] is None

    def test_full_queue_never_blocks(self):
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        reporter = ProgressReporter(queue)
        reporter.emit(ProgressKind.BATCH_STARTED, batch_number=1)
        reporter.emit(ProgressKind.BATCH_STARTED, batch_number=2)
        reporter.close()
        assert queue.qsize() == 1
        assert queue.get_nowait().batch_number == 1

    def test_consumer_task_drains(self):
        async def _run():
            queue: asyncio.Queue = asyncio.Queue()
            reporter = ProgressReporter(queue)
            seen = []

            async def consume():
                while True:
                    event = await queue.get()
                    if event is None:
                        return
                    seen.append(event.segment_index)

            task = asyncio.create_task(consume())
            for i in range(5):
                reporter.emit(ProgressKind.SEGMENT_COMPLETED, segment_index=i)
                await asyncio.sleep(0)
            reporter.close()
            await task
            return seen

        assert asyncio.run(_run()) == [0, 1, 2, 3, 4]
