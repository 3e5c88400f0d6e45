"""Pipeline entry point — from a media file to a MergedTranscript.

WHY: Callers (the CLI, scripts, tests) want one call that does the whole
job: validate, normalize audio, decide whether to chunk, transcribe,
recover from failures, and merge.

HOW: run_pipeline() performs the collaborator work (audio prep, duration
probe, segment extraction) and hands the in-memory AudioSegments to
transcribe_chunks(), which is the engine proper:
dispatch -> retry -> merge. Short audio skips chunking entirely and goes
through the provider's transcribe_whole().

RULES:
- Processing options and provider configuration are validated before any
  network call
- The caller's TranscriptionConfig is never mutated; encoding and sample
  rate are set on a copy after audio prep
- Segment payloads are read fully into memory before dispatch
- Partial success returns a transcript; total failure raises AllSegmentsFailed
- A ConfigurationError from any chunk is raised as itself on both paths
- An AudioProcessor created here is cleaned up here
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from speech_to_text.audio import AudioProcessor, detect_encoding
from speech_to_text.config import ProcessingOptions, TranscriptionConfig
from speech_to_text.core.dispatcher import dispatch
from speech_to_text.core.ir import AudioSegment, MergedTranscript, SegmentDescriptor
from speech_to_text.core.merger import merge
from speech_to_text.core.progress import ProgressKind, ProgressReporter
from speech_to_text.core.retry import retry_failed
from speech_to_text.core.segmenter import segment
from speech_to_text.errors import AllSegmentsFailed, ConfigurationError
from speech_to_text.providers.base import TranscriptionProvider

logger = logging.getLogger(__name__)


def _raise_configuration_error(
    failures: Mapping[int, BaseException],
    total: int,
    reporter: ProgressReporter,
) -> None:
    """Re-raise the lowest-index ConfigurationError, if any chunk hit one."""
    for index in sorted(failures):
        if isinstance(failures[index], ConfigurationError):
            reporter.emit(
                ProgressKind.PIPELINE_FINISHED,
                total_segments=total,
                succeeded=total - len(failures),
                failed=len(failures),
            )
            raise failures[index]


async def transcribe_chunks(
    segments: Sequence[AudioSegment],
    provider: TranscriptionProvider,
    config: TranscriptionConfig,
    options: ProcessingOptions,
    progress: Optional[ProgressReporter] = None,
) -> MergedTranscript:
    """Dispatch, retry, and merge already-extracted segments."""
    reporter = progress or ProgressReporter()
    logger.info(
        "Processing %d chunks with max %d parallel...",
        len(segments),
        options.max_concurrent_chunks,
    )

    outcome = await dispatch(
        segments,
        provider,
        config,
        options.max_concurrent_chunks,
        batch_pause_s=options.batch_pause_s,
        progress=reporter,
    )

    _raise_configuration_error(outcome.failures, len(segments), reporter)

    if outcome.failures and options.retry_failed_chunks:
        await retry_failed(
            segments,
            outcome.failures,
            provider,
            config,
            outcome.table,
            options.max_retries,
            base_delay_s=options.retry_base_delay_s,
            progress=reporter,
            errors=outcome.failures,
        )
        _raise_configuration_error(outcome.failures, len(segments), reporter)

    try:
        merged = merge(outcome.table)
    except AllSegmentsFailed:
        reporter.emit(
            ProgressKind.PIPELINE_FINISHED,
            total_segments=len(segments),
            succeeded=0,
            failed=len(segments),
        )
        raise

    logger.info(
        "Successfully transcribed %d/%d chunks",
        merged.succeeded_count,
        merged.segment_count,
    )
    reporter.emit(
        ProgressKind.PIPELINE_FINISHED,
        total_segments=merged.segment_count,
        succeeded=merged.succeeded_count,
        failed=len(merged.failed_segments),
    )
    return merged


async def extract_segments(
    audio: AudioProcessor,
    audio_path: Path,
    descriptors: Sequence[SegmentDescriptor],
    max_concurrent: int = 3,
) -> List[AudioSegment]:
    """Read every segment's audio into memory, at most ``max_concurrent`` ffmpeg runs at a time."""
    semaphore = asyncio.Semaphore(max(1, int(max_concurrent)))

    async def _one(descriptor: SegmentDescriptor) -> AudioSegment:
        async with semaphore:
            payload = await audio.extract_segment(
                audio_path, descriptor.start_s, descriptor.duration_s
            )
        return AudioSegment(descriptor=descriptor, payload=payload)

    return list(await asyncio.gather(*(_one(d) for d in descriptors)))


async def run_pipeline(
    source_path: str | Path,
    config: TranscriptionConfig,
    options: Optional[ProcessingOptions] = None,
    *,
    provider: TranscriptionProvider,
    audio: Optional[AudioProcessor] = None,
    progress: Optional[ProgressReporter] = None,
) -> MergedTranscript:
    """Transcribe ``source_path`` end to end.

    Raises:
        InvalidParameters: bad chunking/processing options.
        ConfigurationError: the provider cannot run with ``config``.
        AudioProcessingError: the input cannot be probed or converted.
        AllSegmentsFailed: no part of the audio was transcribed.
    """
    options = options or ProcessingOptions()
    options.validate()
    provider.validate(config)

    reporter = progress or ProgressReporter()
    owns_audio = audio is None
    audio = audio or AudioProcessor(temp_dir=options.temp_dir)
    source = Path(source_path)

    try:
        await audio.validate(source)
        audio_path = await audio.prepare(source)
        request_config = replace(
            config,
            encoding=detect_encoding(audio_path),
            sample_rate_hz=audio.sample_rate_hz,
        )
        duration = await audio.probe_duration(audio_path)
        logger.info("Audio file: %s (%s, %.1fs)", audio_path, request_config.encoding, duration)

        if duration <= options.chunk_duration_s:
            reporter.emit(ProgressKind.PIPELINE_STARTED, total_segments=1, duration_s=duration)
            try:
                result = await provider.transcribe_whole(audio_path, request_config)
            except ConfigurationError:
                raise
            except Exception as exc:
                logger.error("Transcription failed: %s", exc)
                reporter.emit(ProgressKind.PIPELINE_FINISHED, total_segments=1,
                              succeeded=0, failed=1)
                raise AllSegmentsFailed(1) from exc
            reporter.emit(ProgressKind.PIPELINE_FINISHED, total_segments=1,
                          succeeded=1, failed=0)
            return MergedTranscript.from_result(result)

        descriptors = segment(duration, options.chunk_duration_s, options.overlap_s)
        logger.info("Split into %d chunks", len(descriptors))
        reporter.emit(
            ProgressKind.PIPELINE_STARTED,
            total_segments=len(descriptors),
            duration_s=duration,
        )
        segments = await extract_segments(
            audio, audio_path, descriptors, options.max_concurrent_chunks
        )
        return await transcribe_chunks(segments, provider, request_config, options, reporter)
    finally:
        if owns_audio:
            audio.cleanup()
