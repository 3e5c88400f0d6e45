"""SubRip (SRT) subtitle formatter built from word timings.

WHY: Subtitles are the most common reason to want word offsets at all.
Grouping words into short cues is enough for review and rough captioning
without a full caption-layout engine.

HOW: build_cues() walks the time-ordered words and closes a cue once it
spans at least MAX_CUE_S seconds, or once it ends a sentence after at
least MIN_SENTENCE_CUE_S seconds. Leftover words form the final cue.
The same cues feed the WebVTT formatter.

RULES:
- Cue duration = last word end - first word start
- Sentence end: word text ending in . ! ? or their full-width forms
- Cue text is the words joined with single spaces
- Timestamps are HH:MM:SS,mmm rounded to the millisecond
- No words -> empty file
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from speech_to_text.core.ir import MergedTranscript, WordSpan
from speech_to_text.formatters.base import BaseFormatter, FormatterOutput

MAX_CUE_S = 3.0
MIN_SENTENCE_CUE_S = 1.0

_SENTENCE_END = (".", "!", "?", "。", "！", "？")


@dataclass
class Cue:
    start_s: float
    end_s: float
    text: str


def format_timestamp(seconds: float, separator: str = ",") -> str:
    """Format seconds as ``HH:MM:SS,mmm`` (or with ``.`` for WebVTT)."""
    total_ms = int(round(max(seconds, 0.0) * 1000))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, ms = divmod(rest, 1000)
    return "{:02d}:{:02d}:{:02d}{}{:03d}".format(hours, minutes, secs, separator, ms)


def _make_cue(words: Sequence[WordSpan]) -> Cue:
    return Cue(
        start_s=words[0].start_s,
        end_s=words[-1].end_s,
        text=" ".join(w.text for w in words),
    )


def build_cues(words: Sequence[WordSpan]) -> List[Cue]:
    cues: List[Cue] = []
    current: List[WordSpan] = []

    for word in words:
        current.append(word)
        duration = current[-1].end_s - current[0].start_s
        ends_sentence = word.text.endswith(_SENTENCE_END)
        if duration >= MAX_CUE_S or (ends_sentence and duration >= MIN_SENTENCE_CUE_S):
            cues.append(_make_cue(current))
            current = []

    if current:
        cues.append(_make_cue(current))
    return cues


class SRTFormatter(BaseFormatter):

    @property
    def name(self) -> str:
        return "SubRip Subtitles"

    def format(self, transcript: MergedTranscript) -> FormatterOutput:
        blocks = [
            "{}\n{} --> {}\n{}\n".format(
                number, format_timestamp(cue.start_s), format_timestamp(cue.end_s), cue.text
            )
            for number, cue in enumerate(build_cues(transcript.words), start=1)
        ]
        return FormatterOutput(
            suffix=".srt",
            content="\n".join(blocks),
            media_type="application/x-subrip",
        )
