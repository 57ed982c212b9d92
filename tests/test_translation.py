"""Tests for Tamil transliteration of extracted records."""

import pytest

from tnprop.pipeline.translation import (
    UNKNOWN_NAME,
    _fix_orphan_vowel_signs,
    has_tamil,
    translate_record,
    translate_records,
    translate_to_english,
    transliterate_tamil,
)


def test_has_tamil():
    assert has_tamil("முருகன்")
    assert has_tamil("Plot 12 சென்னை")
    assert not has_tamil("Murugan")
    assert not has_tamil(None)
    assert not has_tamil(42)


@pytest.mark.parametrize("tamil,latin", [
    ("முருகன்", "Murukan"),
    ("சென்னை", "Sennai"),
    ("ராமன் கிருஷ்ணன்", "Raman Kirushnan"),
])
def test_transliterate(tamil, latin):
    assert transliterate_tamil(tamil) == latin


def test_tamil_digits_become_ascii():
    assert transliterate_tamil("௧௨௩") == "123"


def test_orphan_vowel_sign_moved_after_consonant():
    assert _fix_orphan_vowel_signs("ெப") == "பெ"
    # Nothing to attach to: dropped
    assert _fix_orphan_vowel_signs("ி") == ""


def test_translate_to_english_passthrough():
    assert translate_to_english("Tambaram") == "Tambaram"
    assert translate_to_english(None) == ""
    assert translate_to_english("") == ""


class TestTranslateRecord:

    def test_native_fallback_and_unknown(self):
        record = {
            "surveyNumber": "12",
            "documentNumber": "A1",
            "buyerName": "",
            "buyerNameNative": "முருகன்",
            "sellerName": None,
            "district": "சென்னை",
            "village": "Tambaram",
        }
        out = translate_record(record, pdf_file_name="ec.pdf")
        assert out["buyerName"] == "Murukan"
        assert out["sellerName"] == UNKNOWN_NAME
        assert out["district"] == "Sennai"
        assert out["village"] == "Tambaram"
        assert out["pdfFileName"] == "ec.pdf"
        # Native script preserved, input untouched
        assert out["buyerNameNative"] == "முருகன்"
        assert record["buyerName"] == ""

    def test_tamil_name_left_by_model_is_transliterated(self):
        out = translate_record({"surveyNumber": "1", "documentNumber": "A", "sellerName": "சென்னை"})
        assert out["sellerName"] == "Sennai"

    def test_english_names_unchanged(self, sample_records):
        out = translate_records(sample_records)
        assert [r["buyerName"] for r in out] == ["Muthu", "Lakshmi"]
        assert "pdfFileName" not in out[0]
