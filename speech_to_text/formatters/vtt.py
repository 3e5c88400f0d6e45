"""WebVTT formatter: the SRT cues with a WEBVTT header and dotted timestamps."""

from __future__ import annotations

from speech_to_text.core.ir import MergedTranscript
from speech_to_text.formatters.base import BaseFormatter, FormatterOutput
from speech_to_text.formatters.srt import build_cues, format_timestamp


class VTTFormatter(BaseFormatter):

    @property
    def name(self) -> str:
        return "WebVTT Subtitles"

    def format(self, transcript: MergedTranscript) -> FormatterOutput:
        blocks = [
            "{} --> {}\n{}\n".format(
                format_timestamp(cue.start_s, "."), format_timestamp(cue.end_s, "."), cue.text
            )
            for cue in build_cues(transcript.words)
        ]
        content = "WEBVTT\n\n" + "\n".join(blocks)
        return FormatterOutput(suffix=".vtt", content=content, media_type="text/vtt")
