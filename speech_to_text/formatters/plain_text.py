"""Plain text formatter: just the transcript.

RULES:
- Content is the merged transcript text followed by one newline
- An empty transcript produces an empty file
- Output suffix: ".txt"
"""

from __future__ import annotations

from speech_to_text.core.ir import MergedTranscript
from speech_to_text.formatters.base import BaseFormatter, FormatterOutput


class PlainTextFormatter(BaseFormatter):
    """Formatter that writes the transcript with no timing information."""

    @property
    def name(self) -> str:
        return "Plain Text"

    def format(self, transcript: MergedTranscript) -> FormatterOutput:
        content = transcript.transcript.strip()
        if content:
            content += "\n"
        return FormatterOutput(suffix=".txt", content=content, media_type="text/plain")
