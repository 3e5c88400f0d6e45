"""Command-line interface for speech-to-text.

WHY: Users need a simple way to transcribe audio/video files from the
terminal. The CLI wires together the full pipeline (settings, credentials,
provider selection, chunked transcription, formatter output, and file
saving) behind a single command.

HOW: Uses argparse to accept an input file plus provider, language,
chunking, retry, and credential options. A JSON config file (-c) is
overlaid on the defaults and explicit flags are overlaid on that. The
async pipeline runs via asyncio.run(); a drain task prints progress
events from the pipeline's queue while it works. Status messages go to
stderr; the transcript itself goes to stdout unless -o is given.

RULES:
- ``speech-to-text examples`` prints usage examples
- ``speech-to-text init-config [-o PATH]`` writes a sample config file
- Anything else is ``speech-to-text INPUT [options]``
- Precedence: explicit flag > config file > environment/.env > default
- Input extension is checked against SUPPORTED_INPUT_FORMATS before any API call
- Temporary credential files are removed on every exit path
- Exit code 1 on any error, 130 on Ctrl-C
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from speech_to_text import __version__
from speech_to_text.auth import CredentialStore
from speech_to_text.config import (
    DEFAULT_PROVIDER,
    SUPPORTED_INPUT_FORMATS,
    GoogleCloudSettings,
    ProcessingOptions,
    TranscriptionConfig,
    config_template,
    load_config_file,
)
from speech_to_text.core.ir import MergedTranscript
from speech_to_text.core.pipeline import run_pipeline
from speech_to_text.core.progress import ProgressEvent, ProgressKind, ProgressReporter
from speech_to_text.errors import SpeechToTextError
from speech_to_text.formatters import FORMATTERS, detect_format
from speech_to_text.providers import ProviderKind, create_provider

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_OUTPUT = "speech-config.json"

EXAMPLES = """\
Examples:

1. Basic transcription (Japanese):
   speech-to-text audio.mp3

2. English transcription with Vertex AI:
   speech-to-text audio.wav -p vertex-ai -l en-US

3. Video file to text file:
   speech-to-text video.mp4 -o transcript.txt

4. Generate SRT subtitles:
   speech-to-text video.mp4 -o subtitles.srt -f srt

5. Explicit project and key file:
   speech-to-text audio.mp3 --project-id my-project --key-file ./key.json

6. Base64-encoded credentials:
   speech-to-text audio.mp3 --key-file "$(base64 -i key.json)"

7. Long file, smaller chunks, more parallelism:
   speech-to-text lecture.mp4 --chunk-duration 30 --max-concurrent 5

8. Using a config file:
   speech-to-text audio.mp3 -c config.json
"""


def _status(msg: str) -> None:
    """Print a status message to stderr so stdout stays pipeable."""
    print(msg, file=sys.stderr, flush=True)


def format_duration(seconds: float) -> str:
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return "{}h {}m {}s".format(hours, minutes, secs)
    if minutes:
        return "{}m {}s".format(minutes, secs)
    return "{}s".format(secs)


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------


def describe_event(event: ProgressEvent) -> Optional[str]:
    """One status line for a progress event, or None for nothing to show."""
    kind = event.kind
    if kind is ProgressKind.PIPELINE_STARTED:
        duration = format_duration(event.duration_s or 0.0)
        if event.total_segments and event.total_segments > 1:
            return "Transcribing {} of audio in {} chunks...".format(duration, event.total_segments)
        return "Transcribing {} of audio...".format(duration)
    if kind is ProgressKind.BATCH_STARTED:
        return "Processing batch {}/{} (chunks {}-{}/{})".format(
            event.batch_number,
            event.total_batches,
            event.first_index + 1,
            event.last_index + 1,
            event.total_segments,
        )
    if kind is ProgressKind.SEGMENT_COMPLETED:
        return "  Chunk {}/{} done ({:.1f}s)".format(
            event.segment_index + 1, event.total_segments, event.duration_s or 0.0
        )
    if kind is ProgressKind.SEGMENT_FAILED:
        return "  Chunk {}/{} failed: {}".format(
            event.segment_index + 1, event.total_segments, event.error
        )
    if kind is ProgressKind.RETRY_STARTED:
        return "Retrying {} failed chunk(s)...".format(event.total_segments)
    if kind is ProgressKind.RETRY_ATTEMPT:
        return "  Retrying chunk {} (attempt {}/{})".format(
            event.segment_index + 1, event.attempt, event.max_attempts
        )
    if kind is ProgressKind.RETRY_SUCCEEDED:
        return "  Chunk {} succeeded on retry {}".format(event.segment_index + 1, event.attempt)
    if kind is ProgressKind.RETRY_EXHAUSTED:
        return "  Chunk {} gave up: {}".format(event.segment_index + 1, event.error)
    if kind is ProgressKind.PIPELINE_FINISHED:
        return "Transcribed {}/{} chunks".format(event.succeeded, event.total_segments)
    return None


async def _drain_progress(queue: asyncio.Queue) -> None:
    while True:
        event = await queue.get()
        if event is None:
            return
        line = describe_event(event)
        if line:
            _status(line)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def build_settings(args: argparse.Namespace) -> GoogleCloudSettings:
    """Environment settings with --project-id/--location/--key-file applied."""
    settings = GoogleCloudSettings.from_env()
    if args.project_id:
        settings.project_id = args.project_id
        settings.vertex_project_id = args.project_id
    if args.location:
        settings.location = args.location
        settings.vertex_location = args.location
    if args.key_file:
        settings.credentials = args.key_file
    return settings


def build_configs(args: argparse.Namespace) -> Tuple[TranscriptionConfig, ProcessingOptions]:
    """Defaults, then the config file, then explicit flags."""
    cfg = TranscriptionConfig()
    opts = ProcessingOptions()
    if args.config:
        cfg, opts = load_config_file(args.config, cfg, opts)

    if args.language:
        cfg.language_code = args.language
    if args.chunk_duration is not None:
        opts.chunk_duration_s = args.chunk_duration
    if args.overlap is not None:
        opts.overlap_s = args.overlap
    if args.max_concurrent is not None:
        opts.max_concurrent_chunks = args.max_concurrent
    if args.max_retries is not None:
        opts.max_retries = args.max_retries
    if args.no_retry:
        opts.retry_failed_chunks = False
    if args.output:
        opts.output_path = args.output
    if args.format:
        opts.output_format = args.format
    if args.verbose:
        opts.verbose = True
    return cfg, opts


def save_output(transcript: MergedTranscript, output_path: str | Path, output_format: Optional[str] = None) -> Path:
    """Render ``transcript`` and write it to ``output_path``.

    The format comes from ``output_format`` or, failing that, the
    path's extension.
    """
    key = output_format or detect_format(output_path)
    if key not in FORMATTERS:
        raise SpeechToTextError(
            "Unknown output format '{}'. Available formats: {}".format(
                key, ", ".join(sorted(FORMATTERS))
            )
        )
    output = FORMATTERS[key]().format(transcript)
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(output.content, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _transcribe(args: argparse.Namespace) -> None:
    """Run the pipeline for one input file and report the result."""
    input_path = Path(args.input_file).expanduser().resolve()
    if not input_path.is_file():
        raise SpeechToTextError("Input file not found: {}".format(input_path))

    ext = input_path.suffix.lower()
    if ext not in SUPPORTED_INPUT_FORMATS:
        raise SpeechToTextError(
            "Unsupported file type '{}'. Supported formats: {}".format(
                ext, ", ".join(sorted(SUPPORTED_INPUT_FORMATS))
            )
        )

    kind = ProviderKind.parse(args.provider or DEFAULT_PROVIDER)
    cfg, opts = build_configs(args)
    settings = build_settings(args)

    if opts.verbose:
        _status("Configuration:")
        _status("  Provider: {}".format(kind.value))
        _status("  Language: {}".format(cfg.language_code))
        _status("  Input: {}".format(input_path))
        if opts.output_path:
            _status("  Output: {}".format(opts.output_path))
        _status("")

    credentials = CredentialStore()
    try:
        settings.credentials = credentials.prepare(settings.credentials)

        queue: asyncio.Queue = asyncio.Queue()
        reporter = ProgressReporter(queue)
        drain = asyncio.create_task(_drain_progress(queue))
        try:
            async with create_provider(kind, settings) as provider:
                transcript = await run_pipeline(
                    input_path, cfg, opts, provider=provider, progress=reporter
                )
        finally:
            reporter.close()
            await drain
    finally:
        credentials.cleanup()

    if transcript.failed_segments:
        _status("Warning: {} chunk(s) could not be transcribed: {}".format(
            len(transcript.failed_segments),
            ", ".join(str(i + 1) for i in transcript.failed_segments),
        ))

    if opts.output_path:
        path = save_output(transcript, opts.output_path, opts.output_format)
        _status("Output saved to: {}".format(path))

    if not opts.output_path or opts.verbose:
        print(transcript.transcript)
        if transcript.confidence is not None:
            _status("Confidence: {:.1f}%".format(transcript.confidence * 100))
        if transcript.words:
            _status("Word count: {}".format(len(transcript.words)))


def _init_config(output: str) -> None:
    path = Path(output)
    path.write_text(json.dumps(config_template(), indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    _status("Sample configuration file created: {}".format(path))


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for transcription runs.

    Separated from main() so tests can inspect the parser without running
    the pipeline. Flags that can also come from a config file default to
    None so the config file value survives when the flag is omitted.
    """
    parser = argparse.ArgumentParser(
        prog="speech-to-text",
        description="Transcribe audio and video files using Google Cloud "
                    "Speech-to-Text or Vertex AI.",
        epilog="Other commands: 'speech-to-text examples', "
               "'speech-to-text init-config [-o PATH]'.",
    )
    parser.add_argument("--version", action="version", version="%(prog)s " + __version__)
    parser.add_argument("input_file", help="Path to the audio or video file.")
    parser.add_argument("-o", "--output", default=None, help="Output file path.")
    parser.add_argument(
        "-p", "--provider",
        default=None,
        choices=[k.value for k in ProviderKind],
        help="Speech provider (default: {}).".format(DEFAULT_PROVIDER),
    )
    parser.add_argument("-l", "--language", default=None,
                        help="Language code, e.g. ja-JP or en-US (default: ja-JP).")
    parser.add_argument(
        "-f", "--format",
        default=None,
        choices=sorted(FORMATTERS),
        help="Output format (default: from the output file extension, else txt).",
    )
    parser.add_argument("-c", "--config", default=None, help="Path to a JSON configuration file.")
    parser.add_argument("--chunk-duration", type=float, default=None,
                        help="Chunk length in seconds (default: 59).")
    parser.add_argument("--overlap", type=float, default=None,
                        help="Overlap between chunks in seconds (default: 1).")
    parser.add_argument("--max-concurrent", type=int, default=None,
                        help="Maximum chunks transcribed at once (default: 3).")
    parser.add_argument("--max-retries", type=int, default=None,
                        help="Retry attempts per failed chunk (default: 3).")
    parser.add_argument("--no-retry", action="store_true", help="Disable retry of failed chunks.")
    parser.add_argument("--project-id", default=None, help="Google Cloud project ID.")
    parser.add_argument("--location", default=None, help="Google Cloud location (default: us-central1).")
    parser.add_argument(
        "--key-file",
        default=None,
        help="Service account key: a file path or base64-encoded JSON.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output.")
    return parser


def build_init_config_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="speech-to-text init-config",
        description="Create a sample configuration file.",
    )
    parser.add_argument(
        "-o", "--output",
        default=DEFAULT_CONFIG_OUTPUT,
        help="Output path for the config file (default: %(default)s).",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    argv = list(sys.argv[1:] if argv is None else argv)

    if argv[:1] == ["examples"]:
        print(EXAMPLES)
        return
    if argv[:1] == ["init-config"]:
        args = build_init_config_parser().parse_args(argv[1:])
        try:
            _init_config(args.output)
        except OSError as e:
            print("Error: {}".format(e), file=sys.stderr)
            sys.exit(1)
        return

    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        asyncio.run(_transcribe(args))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except (SpeechToTextError, ValueError, OSError) as e:
        # Config errors, bad input, ffmpeg failures, provider errors
        print("Error: {}".format(e), file=sys.stderr)
        if args.verbose:
            logger.exception("Transcription failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
