"""Record shape for extracted property transactions.

Records travel through the pipeline as plain dicts with camelCase keys,
the same shape the model returns and the HTTP API serves.
"""

from typing import Any

# ═══════════════════════════════════════════════════
# EXTRACTED RECORD
# ═══════════════════════════════════════════════════

REQUIRED_FIELDS = ("surveyNumber", "documentNumber")

OPTIONAL_FIELDS = (
    "buyerName",
    "buyerNameNative",
    "sellerName",
    "sellerNameNative",
    "houseNumber",
    "transactionDate",     # DD/MM/YYYY
    "transactionValue",    # digits only, no separators
    "district",
    "village",
    "additionalInfo",
)

RECORD_FIELDS = REQUIRED_FIELDS + OPTIONAL_FIELDS


def has_required_fields(record: Any) -> bool:
    """True when ``record`` is an object carrying every required field."""
    if not isinstance(record, dict):
        return False
    for key in REQUIRED_FIELDS:
        value = record.get(key)
        if value is None:
            return False
        if isinstance(value, str) and not value.strip():
            return False
    return True


def dedup_key(record: dict) -> str:
    """Composite business key: ``documentNumber-surveyNumber``."""
    return f"{record.get('documentNumber')}-{record.get('surveyNumber')}"
