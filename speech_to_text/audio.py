"""Audio collaborator — ffmpeg/ffprobe wrappers used by the pipeline.

WHY: The speech APIs want 16 kHz mono PCM, and users hand us mp3s,
phone recordings, and screen-capture videos. The engine itself only needs
three things: a duration, a normalized file, and the bytes of any slice.

HOW: Shells out to ffmpeg/ffprobe via asyncio.create_subprocess_exec.
Converted files go to a private temp directory owned by the
AudioProcessor; segment audio is streamed out of ffmpeg through
``pipe:1`` straight into memory, so no chunk files are left behind.

RULES:
- Use as: async with AudioProcessor() as audio: ...
- Video input and anything that is not WAV/FLAC is converted to 16 kHz mono WAV
- extract_segment() returns a complete WAV file (header included) as bytes
- Every ffmpeg/ffprobe failure raises AudioProcessingError
- cleanup() removes the temp directory; it is safe to call twice
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from speech_to_text.config import DEFAULT_SAMPLE_RATE_HZ, VIDEO_FORMATS
from speech_to_text.errors import AudioProcessingError

logger = logging.getLogger(__name__)

_PASSTHROUGH_FORMATS = {".wav", ".flac"}

_ENCODING_BY_EXT = {
    ".wav": "LINEAR16",
    ".mp3": "MP3",
    ".flac": "FLAC",
    ".ogg": "OGG_OPUS",
    ".webm": "WEBM_OPUS",
}


@dataclass(frozen=True)
class AudioInfo:
    duration_s: float
    bitrate: int
    codec: str
    sample_rate_hz: int
    channels: int


def detect_encoding(path: str | Path) -> str:
    """Map a file extension to a recognition encoding (LINEAR16 by default)."""
    return _ENCODING_BY_EXT.get(Path(path).suffix.lower(), "LINEAR16")


def is_video(path: str | Path) -> bool:
    return Path(path).suffix.lower() in VIDEO_FORMATS


async def _run(args: List[str]) -> Tuple[bytes, bytes]:
    """Run a command and return (stdout, stderr); raise on failure."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise AudioProcessingError(f"{args[0]} not found; install ffmpeg") from exc
    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        detail = stderr.decode("utf-8", errors="replace").strip().splitlines()
        raise AudioProcessingError(
            "{} failed (code={}): {}".format(Path(args[0]).name, proc.returncode, detail[-1] if detail else "")
        )
    return stdout, stderr


class AudioProcessor:
    """Probe, normalize, and slice audio with ffmpeg."""

    def __init__(
        self,
        temp_dir: Optional[str | Path] = None,
        ffmpeg_bin: str = "ffmpeg",
        ffprobe_bin: str = "ffprobe",
        sample_rate_hz: int = DEFAULT_SAMPLE_RATE_HZ,
    ) -> None:
        self._temp_root = Path(temp_dir) if temp_dir else None
        self._temp_dir: Optional[Path] = None
        self.ffmpeg_bin = ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin
        self.sample_rate_hz = sample_rate_hz

    async def __aenter__(self) -> AudioProcessor:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.cleanup()

    def _ensure_temp_dir(self) -> Path:
        if self._temp_dir is None:
            if self._temp_root is not None:
                self._temp_root.mkdir(parents=True, exist_ok=True)
            self._temp_dir = Path(
                tempfile.mkdtemp(prefix="stt-", dir=str(self._temp_root) if self._temp_root else None)
            )
        return self._temp_dir

    def cleanup(self) -> None:
        if self._temp_dir is not None:
            shutil.rmtree(self._temp_dir, ignore_errors=True)
            logger.debug("removed temp dir %s", self._temp_dir)
            self._temp_dir = None

    # ------------------------------------------------------------------
    # Probing
    # ------------------------------------------------------------------

    async def probe_info(self, path: str | Path) -> AudioInfo:
        stdout, _ = await _run([
            self.ffprobe_bin,
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(path),
        ])
        try:
            data = json.loads(stdout.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise AudioProcessingError(f"Failed to get audio info: {exc}") from exc

        audio_stream = next(
            (s for s in data.get("streams", []) if s.get("codec_type") == "audio"),
            None,
        )
        if audio_stream is None:
            raise AudioProcessingError("No audio stream found")

        fmt = data.get("format", {})
        return AudioInfo(
            duration_s=float(fmt.get("duration") or audio_stream.get("duration") or 0.0),
            bitrate=int(fmt.get("bit_rate") or 0),
            codec=audio_stream.get("codec_name") or "unknown",
            sample_rate_hz=int(audio_stream.get("sample_rate") or 0),
            channels=int(audio_stream.get("channels") or 0),
        )

    async def probe_duration(self, path: str | Path) -> float:
        info = await self.probe_info(path)
        return info.duration_s

    async def validate(self, path: str | Path) -> AudioInfo:
        path = Path(path)
        if not path.is_file():
            raise AudioProcessingError(f"Audio file not found: {path}")
        if path.stat().st_size == 0:
            raise AudioProcessingError("Audio file is empty")
        try:
            return await self.probe_info(path)
        except AudioProcessingError as exc:
            raise AudioProcessingError(f"Invalid audio/video file: {exc}") from exc

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def _pcm_args(self) -> List[str]:
        return ["-acodec", "pcm_s16le", "-ar", str(self.sample_rate_hz), "-ac", "1"]

    async def prepare(self, path: str | Path) -> Path:
        """Return a file the providers can read, converting when needed."""
        path = Path(path)
        if path.suffix.lower() in _PASSTHROUGH_FORMATS and not is_video(path):
            return path

        output = self._ensure_temp_dir() / f"{path.stem}.wav"
        logger.info("Converting %s to %d Hz mono WAV", path.name, self.sample_rate_hz)
        await _run([
            self.ffmpeg_bin, "-y", "-v", "error",
            "-i", str(path),
            "-vn",
            *self._pcm_args(),
            "-f", "wav",
            str(output),
        ])
        return output

    async def extract_segment(self, path: str | Path, start_s: float, duration_s: float) -> bytes:
        """Return ``duration_s`` seconds of audio from ``start_s`` as WAV bytes."""
        if duration_s <= 0:
            raise AudioProcessingError(f"Segment duration must be > 0, got {duration_s}")
        stdout, _ = await _run([
            self.ffmpeg_bin, "-v", "error",
            "-ss", f"{start_s:.3f}",
            "-t", f"{duration_s:.3f}",
            "-i", str(path),
            "-vn",
            *self._pcm_args(),
            "-f", "wav",
            "pipe:1",
        ])
        if not stdout:
            raise AudioProcessingError(
                f"ffmpeg produced no audio for {start_s:.3f}s+{duration_s:.3f}s"
            )
        return stdout
