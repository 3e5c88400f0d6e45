"""Speech-to-Text — chunked transcription for long audio and video files.

WHY: Cloud speech APIs cap synchronous requests at about one minute of
audio. Long recordings must be split, transcribed piece by piece, and put
back together without losing timing or order.

HOW: Four-stage pipeline — prepare (audio collaborator), segment and
dispatch (core engine), merge (core engine), format (pluggable
formatters). Providers plug in behind a single abstract port.

RULES:
- The core engine never talks HTTP directly; providers do
- Segment results are addressed by index, never by completion order
- All formatters consume the same MergedTranscript
"""

__version__ = "1.0.0"
