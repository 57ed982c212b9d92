"""Cross-segment deduplication."""

from tnprop.pipeline.schemas import dedup_key


def dedupe_records(records: list[dict]) -> list[dict]:
    """Drop records whose ``documentNumber-surveyNumber`` key was already seen.

    First occurrence wins; later duplicates are dropped whole, never merged
    field by field.  Order-preserving and idempotent.
    """
    seen: set[str] = set()
    unique = []
    for record in records:
        key = dedup_key(record)
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique
