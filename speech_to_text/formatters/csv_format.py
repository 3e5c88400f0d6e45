"""CSV formatter: one row per word.

RULES:
- Header: Start Time,End Time,Word,Confidence,Speaker
- Times and confidence with three decimals; missing values are empty
- The word column is always quoted, embedded quotes doubled
- Rows separated by "\\n", no trailing newline
"""

from __future__ import annotations

from typing import List

from speech_to_text.core.ir import MergedTranscript
from speech_to_text.formatters.base import BaseFormatter, FormatterOutput

CSV_HEADER = ("Start Time", "End Time", "Word", "Confidence", "Speaker")


def _quote(text: str) -> str:
    return '"{}"'.format(text.replace('"', '""'))


class CSVFormatter(BaseFormatter):

    @property
    def name(self) -> str:
        return "CSV Word Table"

    def format(self, transcript: MergedTranscript) -> FormatterOutput:
        rows: List[str] = [",".join(CSV_HEADER)]
        for word in transcript.words:
            rows.append(",".join([
                "{:.3f}".format(word.start_s),
                "{:.3f}".format(word.end_s),
                _quote(word.text),
                "{:.3f}".format(word.confidence) if word.confidence is not None else "",
                str(word.speaker_tag) if word.speaker_tag else "",
            ]))
        return FormatterOutput(suffix=".csv", content="\n".join(rows), media_type="text/csv")
