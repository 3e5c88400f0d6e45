"""JSON formatter: the full MergedTranscript, pretty-printed."""

from __future__ import annotations

import json

from speech_to_text.core.ir import MergedTranscript
from speech_to_text.formatters.base import BaseFormatter, FormatterOutput


class JSONFormatter(BaseFormatter):

    @property
    def name(self) -> str:
        return "JSON"

    def format(self, transcript: MergedTranscript) -> FormatterOutput:
        # Non-ASCII kept as-is so Japanese transcripts stay readable
        content = json.dumps(transcript.to_dict(), indent=2, ensure_ascii=False)
        return FormatterOutput(suffix=".json", content=content + "\n", media_type="application/json")
