"""Formatter contract: one MergedTranscript in, one file's worth of text out.

WHY: save_output() in the CLI only knows a format key and a path. Keeping
the rendering behind a two-member interface lets it write JSON, text,
subtitles, or word tables without knowing anything about them.

HOW: A formatter reads the merged words and transcript and returns a
single FormatterOutput: the text, the extension it would use by default,
and the MIME type. Writing the text to disk is the caller's job.

RULES:
- ``format()`` returns exactly one FormatterOutput, never a list
- Content is always ``str``; the CLI writes it as UTF-8
- Word times are already global, so formatters never add offsets
- The transcript is read-only
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from speech_to_text.core.ir import MergedTranscript


@dataclass
class FormatterOutput:
    """Rendered text plus the file metadata that goes with it.

    Attributes:
        suffix: Default extension, e.g. ``".srt"``.
        content: The file content as text.
        media_type: MIME type, e.g. ``"text/vtt"``.
    """

    suffix: str
    content: str
    media_type: str


class BaseFormatter(ABC):
    """A renderer for one output format.

    New formats subclass this and get a key in ``FORMATTERS``; nothing
    else in the package needs to change.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable format name, e.g. 'SubRip Subtitles'."""

    @abstractmethod
    def format(self, transcript: MergedTranscript) -> FormatterOutput:
        """Render the merged transcript as one output file."""
