"""Tamil → Latin transliteration for extracted records.

The model is asked to transliterate names itself; this module is the
safety net for Tamil script that still reaches the database (names the
model left untouched, district/village fields, native-name fallbacks).
It is an approximate phonetic rendering, not a linguistic translation.
"""

import logging
import unicodedata

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown"

# ═══════════════════════════════════════════════════
# TRANSLITERATION TABLES
# ═══════════════════════════════════════════════════

_TAMIL_VOWELS = {
    'அ': 'a', 'ஆ': 'aa', 'இ': 'i', 'ஈ': 'ee', 'உ': 'u', 'ஊ': 'oo',
    'எ': 'e', 'ஏ': 'ae', 'ஐ': 'ai', 'ஒ': 'o', 'ஓ': 'o', 'ஔ': 'au',
}

_TAMIL_CONSONANTS = {
    'க': 'k', 'ங': 'ng', 'ச': 's', 'ஞ': 'nj', 'ட': 't', 'ண': 'n',
    'த': 'th', 'ந': 'n', 'ப': 'p', 'ம': 'm', 'ய': 'y', 'ர': 'r',
    'ல': 'l', 'வ': 'v', 'ழ': 'zh', 'ள': 'l', 'ற': 'r', 'ன': 'n',
    'ஜ': 'j', 'ஷ': 'sh', 'ஸ': 's', 'ஹ': 'h',
}

# Dependent vowel signs, applied after a consonant
_TAMIL_VOWEL_SIGNS = {
    '\u0bbe': 'a',   # ா
    '\u0bbf': 'i',   # ி
    '\u0bc0': 'ee',  # ீ
    '\u0bc1': 'u',   # ு
    '\u0bc2': 'oo',  # ூ
    '\u0bc6': 'e',   # ெ
    '\u0bc7': 'ae',  # ே
    '\u0bc8': 'ai',  # ை
    '\u0bca': 'o',   # ொ
    '\u0bcb': 'o',   # ோ
    '\u0bcc': 'au',  # ௌ
}

_TAMIL_PULLI = '\u0bcd'  # ், suppresses the inherent 'a'
_TAMIL_AYTHAM = '\u0b83'  # ஃ

_VOWEL_SIGN_MIN = 0x0BBE
_VOWEL_SIGN_MAX = 0x0BCC
_CONSONANT_MIN = 0x0B95
_CONSONANT_MAX = 0x0BB9

# Tamil digits ௦–௯ (U+0BE6–U+0BEF) → ASCII 0–9
_TAMIL_DIGIT_TABLE = str.maketrans(
    "\u0BE6\u0BE7\u0BE8\u0BE9\u0BEA\u0BEB\u0BEC\u0BED\u0BEE\u0BEF",
    "0123456789",
)


def has_tamil(s) -> bool:
    """Check if string contains Tamil Unicode characters."""
    return isinstance(s, str) and any('\u0B80' <= ch <= '\u0BFF' for ch in s)


def _fix_orphan_vowel_signs(text: str) -> str:
    """Repair text-layer extraction where a vowel sign precedes its consonant.

      Garbled: ெபான்அரசி  (ெ appears before ப)
      Fixed:   பொன்அரசி

    An orphan sign followed by a consonant is swapped with it; an orphan
    with nothing to attach to is dropped.  NFC composition then merges
    split signs (ெ + ா → ொ).
    """
    if not text:
        return text
    cps = list(text)
    n = len(cps)
    result: list[str] = []
    i = 0
    while i < n:
        cp = ord(cps[i])
        if _VOWEL_SIGN_MIN <= cp <= _VOWEL_SIGN_MAX:
            prev_ok = bool(result) and (
                _CONSONANT_MIN <= ord(result[-1]) <= _CONSONANT_MAX
                or _VOWEL_SIGN_MIN <= ord(result[-1]) <= _VOWEL_SIGN_MAX
            )
            if prev_ok:
                result.append(cps[i])
                i += 1
            elif i + 1 < n and _CONSONANT_MIN <= ord(cps[i + 1]) <= _CONSONANT_MAX:
                result.append(cps[i + 1])
                result.append(cps[i])
                i += 2
            else:
                i += 1
        else:
            result.append(cps[i])
            i += 1
    return unicodedata.normalize('NFC', ''.join(result))


def _title_case(text: str) -> str:
    return ' '.join(word[:1].upper() + word[1:].lower() for word in text.split(' '))


def transliterate_tamil(text: str) -> str:
    """Approximate Tamil → Latin rendering, title-cased per word.

    Examples:
      "முருகன்"      → "Murukan"
      "சென்னை"       → "Sennai"
      "ராமன் கிருஷ்ணன்" → "Raman Kirushnan"
    """
    if not text:
        return ""
    text = _fix_orphan_vowel_signs(text).translate(_TAMIL_DIGIT_TABLE)
    result = []
    chars = list(text)
    n = len(chars)
    i = 0

    while i < n:
        ch = chars[i]

        if ch in _TAMIL_VOWELS:
            result.append(_TAMIL_VOWELS[ch])
            i += 1
            continue

        if ch in _TAMIL_CONSONANTS:
            consonant = _TAMIL_CONSONANTS[ch]
            i += 1
            if i < n and chars[i] == _TAMIL_PULLI:
                result.append(consonant)
                i += 1
            elif i < n and chars[i] in _TAMIL_VOWEL_SIGNS:
                result.append(consonant + _TAMIL_VOWEL_SIGNS[chars[i]])
                i += 1
            else:
                result.append(consonant + 'a')
            continue

        if ch == _TAMIL_AYTHAM:
            result.append('h')
        elif '\u0B80' <= ch <= '\u0BFF':
            pass  # stray sign with no base
        else:
            result.append(ch)
        i += 1

    return _title_case(''.join(result))


def translate_to_english(text: str | None) -> str:
    """Render ``text`` in Latin script; non-Tamil input is returned unchanged."""
    if not text or not has_tamil(text):
        return text or ""
    return transliterate_tamil(text)


def _name_with_fallback(name: str | None, native: str | None) -> str:
    translated = translate_to_english(name)
    if translated and translated.strip():
        return translated
    if native and native.strip():
        return translate_to_english(native)
    return UNKNOWN_NAME


def translate_record(record: dict, pdf_file_name: str | None = None) -> dict:
    """Return a copy of ``record`` with Latin-script names and locations.

    Buyer/seller names fall back to the transliterated native-script field,
    then to ``"Unknown"``.  The ``*Native`` fields keep the original script.
    """
    translated = dict(record)
    translated["buyerName"] = _name_with_fallback(record.get("buyerName"), record.get("buyerNameNative"))
    translated["sellerName"] = _name_with_fallback(record.get("sellerName"), record.get("sellerNameNative"))
    translated["district"] = translate_to_english(record.get("district"))
    translated["village"] = translate_to_english(record.get("village"))
    if pdf_file_name is not None:
        translated["pdfFileName"] = pdf_file_name
    return translated


def translate_records(records: list[dict], pdf_file_name: str | None = None) -> list[dict]:
    out = [translate_record(r, pdf_file_name) for r in records]
    leftover = sum(1 for r in records for k in ("buyerName", "sellerName") if has_tamil(r.get(k)))
    if leftover:
        logger.info(f"Transliterated {leftover} Tamil-script name(s) the model left untranslated")
    return out
