"""Tests for cross-segment deduplication."""

from tnprop.pipeline.dedup import dedupe_records
from tnprop.pipeline.schemas import dedup_key


def test_identical_keys_from_two_segments_collapse():
    seg1 = [{"surveyNumber": "12", "documentNumber": "D1", "buyerName": "Ravi"}]
    seg2 = [{"surveyNumber": "12", "documentNumber": "D1", "buyerName": "Ravi K"}]
    out = dedupe_records(seg1 + seg2)
    assert out == [{"surveyNumber": "12", "documentNumber": "D1", "buyerName": "Ravi"}]


def test_first_occurrence_wins_and_order_preserved():
    records = [
        {"surveyNumber": "1", "documentNumber": "A", "v": 1},
        {"surveyNumber": "2", "documentNumber": "A", "v": 2},
        {"surveyNumber": "1", "documentNumber": "A", "v": 3},
        {"surveyNumber": "1", "documentNumber": "B", "v": 4},
    ]
    assert [r["v"] for r in dedupe_records(records)] == [1, 2, 4]


def test_idempotent_and_keys_unique(sample_records):
    once = dedupe_records(sample_records + sample_records)
    assert dedupe_records(once) == once
    keys = [dedup_key(r) for r in once]
    assert len(keys) == len(set(keys))


def test_same_document_different_survey_kept():
    records = [
        {"surveyNumber": "311/1", "documentNumber": "1234/2012"},
        {"surveyNumber": "311/2", "documentNumber": "1234/2012"},
    ]
    assert len(dedupe_records(records)) == 2


def test_empty():
    assert dedupe_records([]) == []
