"""Tests for offset correction, the results table, and the merge."""

from __future__ import annotations

import pytest

from speech_to_text.core.ir import MergedTranscript, ResultsTable, TranscriptionResult, WordSpan
from speech_to_text.core.merger import merge, shift_to_global
from speech_to_text.errors import AllSegmentsFailed

from tests.conftest import descriptor, make_result


def _w(text, start, end, confidence=None):
    return WordSpan(text=text, start_s=start, end_s=end, confidence=confidence)


class TestShiftToGlobal:

    def test_adds_segment_offset(self):
        result = make_result(1, "hi", [_w("hi", 0.5, 0.9)])
        shifted = shift_to_global(result, descriptor(1, 57.0, 116.0))
        assert shifted.words[0].start_s == pytest.approx(57.5)
        assert shifted.words[0].end_s == pytest.approx(57.9)

    def test_first_segment_unchanged(self):
        result = make_result(0, "hi", [_w("hi", 0.5, 0.9)])
        shifted = shift_to_global(result, descriptor(0, 0.0, 59.0))
        assert shifted.words == result.words

    def test_original_not_mutated(self):
        result = make_result(1, "hi", [_w("hi", 0.5, 0.9)])
        shift_to_global(result, descriptor(1, 10.0, 20.0))
        assert result.words[0].start_s == 0.5

    def test_index_mismatch_rejected(self):
        with pytest.raises(ValueError):
            shift_to_global(make_result(2, "x"), descriptor(1, 0.0, 1.0))


class TestResultsTable:

    def test_starts_empty(self):
        table = ResultsTable(3)
        assert len(table) == 3
        assert list(table.present()) == []
        assert table.missing() == [0, 1, 2]

    def test_put_and_get(self):
        table = ResultsTable(2)
        table.put(1, make_result(1, "b"))
        assert table.get(1).transcript == "b"
        assert table.get(0) is None
        assert table.missing() == [0]

    def test_present_is_index_ordered(self):
        table = ResultsTable(3)
        table.put(2, make_result(2, "c"))
        table.put(0, make_result(0, "a"))
        assert [i for i, _ in table.present()] == [0, 2]

    def test_later_write_replaces(self):
        table = ResultsTable(1)
        table.put(0, make_result(0, "first"))
        table.put(0, make_result(0, "second"))
        assert table.get(0).transcript == "second"

    def test_out_of_range(self):
        table = ResultsTable(2)
        with pytest.raises(IndexError):
            table.put(2, make_result(2, "x"))

    def test_wrong_slot(self):
        table = ResultsTable(2)
        with pytest.raises(ValueError):
            table.put(0, make_result(1, "x"))


class TestMerge:

    def test_joins_in_index_order(self):
        table = ResultsTable(3)
        table.put(2, make_result(2, "three"))
        table.put(0, make_result(0, "one"))
        table.put(1, make_result(1, "two"))
        assert merge(table).transcript == "one two three"

    def test_partial_failure_hello_world(self):
        table = ResultsTable(3)
        table.put(0, make_result(0, "hello", [_w("hello", 0.5, 0.9)]))
        table.put(2, make_result(2, "world", [_w("world", 115.5, 116.0)]))
        merged = merge(table)
        assert merged.transcript == "hello world"
        assert [w.text for w in merged.words] == ["hello", "world"]
        assert merged.failed_segments == (1,)
        assert merged.segment_count == 3
        assert merged.succeeded_count == 2

    def test_empty_transcripts_add_no_separator(self):
        table = ResultsTable(3)
        table.put(0, make_result(0, "a"))
        table.put(1, make_result(1, "   "))
        table.put(2, make_result(2, "b"))
        assert merge(table).transcript == "a b"

    def test_words_sorted_by_start(self):
        table = ResultsTable(2)
        table.put(0, make_result(0, "x", [_w("late", 58.0, 58.5), _w("early", 1.0, 1.5)]))
        table.put(1, make_result(1, "y", [_w("overlap", 57.5, 58.2)]))
        merged = merge(table)
        assert [w.text for w in merged.words] == ["early", "overlap", "late"]

    def test_ties_keep_segment_order(self):
        table = ResultsTable(2)
        table.put(1, make_result(1, "y", [_w("second", 58.0, 58.5)]))
        table.put(0, make_result(0, "x", [_w("first", 58.0, 58.4)]))
        assert [w.text for w in merge(table).words] == ["first", "second"]

    def test_overlap_words_not_deduplicated(self):
        table = ResultsTable(2)
        table.put(0, make_result(0, "x", [_w("dup", 57.6, 58.0)]))
        table.put(1, make_result(1, "y", [_w("dup", 57.6, 58.0)]))
        assert [w.text for w in merge(table).words] == ["dup", "dup"]

    def test_confidence_mean_skips_unreported(self):
        table = ResultsTable(3)
        table.put(0, make_result(0, "a", confidence=0.8))
        table.put(1, make_result(1, "b", confidence=None))
        table.put(2, make_result(2, "c", confidence=0.6))
        assert merge(table).confidence == pytest.approx(0.7)

    def test_confidence_none_when_nobody_reports(self):
        table = ResultsTable(1)
        table.put(0, make_result(0, "a", confidence=None))
        assert merge(table).confidence is None

    def test_zero_confidence_counts(self):
        table = ResultsTable(2)
        table.put(0, make_result(0, "a", confidence=0.0))
        table.put(1, make_result(1, "b", confidence=1.0))
        assert merge(table).confidence == pytest.approx(0.5)

    def test_language_from_first_present(self):
        table = ResultsTable(2)
        first = make_result(0, "a")
        first.language_code = None
        table.put(0, first)
        second = make_result(1, "b")
        second.language_code = "ja-JP"
        table.put(1, second)
        assert merge(table).language_code == "ja-JP"

    def test_all_missing_raises(self):
        with pytest.raises(AllSegmentsFailed) as excinfo:
            merge(ResultsTable(4))
        assert excinfo.value.segment_count == 4
        assert "All 4 chunks failed" in str(excinfo.value)


class TestMergedTranscript:

    def test_from_whole_result(self):
        result = TranscriptionResult(
            transcript="hi there",
            words=[_w("there", 0.6, 0.9), _w("hi", 0.1, 0.4)],
            confidence=0.95,
            language_code="en-US",
        )
        merged = MergedTranscript.from_result(result)
        assert [w.text for w in merged.words] == ["hi", "there"]
        assert merged.segment_count == 1
        assert merged.failed_segments == ()

    def test_to_dict_shape(self):
        merged = MergedTranscript(
            transcript="hi",
            words=[WordSpan(text="hi", start_s=0.1, end_s=0.4, confidence=0.9, speaker_tag=1)],
            confidence=0.9,
            language_code="en-US",
            segment_count=2,
            failed_segments=(1,),
        )
        data = merged.to_dict()
        assert data["words"] == [
            {"word": "hi", "startTime": 0.1, "endTime": 0.4, "confidence": 0.9, "speakerTag": 1}
        ]
        assert data["failedSegments"] == [1]
        assert data["languageCode"] == "en-US"
