"""Tests for data-quality scoring of extracted records."""

from tnprop.pipeline.quality import calculate_data_quality


def _rec(seller="Raman", value="100000", district="Chennai", village="Adyar"):
    return {"sellerName": seller, "transactionValue": value, "district": district, "village": village}


def test_empty():
    assert calculate_data_quality([]) == {"quality": "unknown", "completeness": 0}


def test_excellent():
    result = calculate_data_quality([_rec() for _ in range(10)])
    assert result["quality"] == "excellent"
    assert result["completeness"] == 100
    assert "warnings" not in result


def test_mostly_unknown_sellers_is_poor():
    records = [_rec(seller="Unknown") for _ in range(6)] + [_rec() for _ in range(4)]
    result = calculate_data_quality(records)
    assert result["quality"] == "poor"
    assert result["details"]["missingSeller"] == 6
    assert result["details"] == {"missingSeller": 6, "missingValue": 0, "missingLocation": 0}
    assert result["completeness"] == 40
    assert result["warnings"] == ["60% missing seller names"]


def test_some_missing_sellers_is_fair():
    records = [_rec(seller="") for _ in range(3)] + [_rec() for _ in range(7)]
    assert calculate_data_quality(records)["quality"] == "fair"


def test_missing_values_downgrade_excellent_to_good():
    records = [_rec(value=None) for _ in range(2)] + [_rec() for _ in range(8)]
    result = calculate_data_quality(records)
    assert result["quality"] == "good"
    assert result["incomplete"] == 2


def test_missing_location_does_not_upgrade_poor():
    records = [_rec(seller="Unknown", village=None) for _ in range(6)] + [_rec() for _ in range(4)]
    result = calculate_data_quality(records)
    assert result["quality"] == "poor"
    assert len(result["warnings"]) == 2
