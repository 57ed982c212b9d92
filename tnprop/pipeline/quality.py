"""Completeness metrics for a batch of extracted records."""

from tnprop.pipeline.translation import UNKNOWN_NAME


def _missing_seller(record: dict) -> bool:
    name = record.get("sellerName")
    return not name or name == UNKNOWN_NAME


def calculate_data_quality(records: list[dict]) -> dict:
    """Summarise how complete the extracted records are.

    Bands: more than half missing seller names is ``poor``, more than a
    fifth is ``fair``; more than 10% missing value or location downgrades
    ``excellent`` to ``good``.
    """
    if not records:
        return {"quality": "unknown", "completeness": 0}

    total = len(records)
    missing_seller = sum(1 for r in records if _missing_seller(r))
    missing_value = sum(1 for r in records if not r.get("transactionValue"))
    missing_location = sum(1 for r in records if not r.get("district") or not r.get("village"))

    complete = total - max(missing_seller, missing_value, missing_location)
    completeness = round(complete / total * 100)

    quality = "excellent"
    warnings: list[str] = []

    if missing_seller > total * 0.5:
        quality = "poor"
        warnings.append(f"{round(missing_seller / total * 100)}% missing seller names")
    elif missing_seller > total * 0.2:
        quality = "fair"
        warnings.append(f"{round(missing_seller / total * 100)}% missing seller names")

    if missing_value > total * 0.1:
        quality = "good" if quality == "excellent" else quality
        warnings.append(f"{round(missing_value / total * 100)}% missing transaction values")

    if missing_location > total * 0.1:
        quality = "good" if quality == "excellent" else quality
        warnings.append(f"{round(missing_location / total * 100)}% missing location data")

    result = {
        "quality": quality,
        "completeness": completeness,
        "total": total,
        "complete": complete,
        "incomplete": total - complete,
        "details": {
            "missingSeller": missing_seller,
            "missingValue": missing_value,
            "missingLocation": missing_location,
        },
    }
    if warnings:
        result["warnings"] = warnings
    return result
