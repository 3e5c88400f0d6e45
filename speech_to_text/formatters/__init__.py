"""Format keys, the classes behind them, and extension-based detection.

WHY: A format is chosen by ``-f``, by ``outputFormat`` in a config file,
or by the extension of ``-o``. All three resolve through the same table
so they can never disagree.

HOW: FORMATTERS maps each key to its formatter class; callers build an
instance per use, e.g. ``FORMATTERS["vtt"]().format(merged)``.
detect_format() lowercases the output path's extension and looks it up.

RULES:
- Keys double as file extensions: json, txt, srt, vtt, csv
- No path, no extension, or an unknown one means "txt"
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional

from speech_to_text.formatters.csv_format import CSVFormatter
from speech_to_text.formatters.json_format import JSONFormatter
from speech_to_text.formatters.plain_text import PlainTextFormatter
from speech_to_text.formatters.srt import SRTFormatter
from speech_to_text.formatters.vtt import VTTFormatter

if TYPE_CHECKING:
    from speech_to_text.formatters.base import BaseFormatter

FORMATTERS: dict[str, type[BaseFormatter]] = {
    "json": JSONFormatter,
    "txt": PlainTextFormatter,
    "srt": SRTFormatter,
    "vtt": VTTFormatter,
    "csv": CSVFormatter,
}

DEFAULT_FORMAT = "txt"


def detect_format(path: Optional[str | Path]) -> str:
    """Return the FORMATTERS key implied by ``path``'s extension."""
    if not path:
        return DEFAULT_FORMAT
    key = Path(path).suffix.lower().lstrip(".")
    return key if key in FORMATTERS else DEFAULT_FORMAT
