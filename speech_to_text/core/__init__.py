"""Chunked transcription engine.

WHY: The core package holds the provider-agnostic heart of the tool:
the IR dataclasses and the segment -> dispatch -> retry -> merge flow.
Providers, audio tooling, and formatters plug in around it.

HOW: ir.py defines the data structures, segmenter.py plans the chunks,
dispatcher.py and retry.py drive the transcription port, merger.py
recombines results, progress.py reports what is happening, and
pipeline.py wires it all together.

RULES:
- IR dataclasses are the contract between modules; change with care
- Nothing in core talks HTTP or shells out directly
- Word times in the ResultsTable are always global (file timeline)
"""
