"""PDF text extraction with pdfplumber.

Pages are joined with a form feed so the chunker can split on page
boundaries.  OCR of image-only scans is out of scope; pages with little or
no text layer are flagged LOW so callers can warn about them.
"""

import io
import logging
import re

import pdfplumber

from tnprop.pipeline.errors import UnreadableDocumentError

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\f"

# Quality thresholds
MIN_CHARS_PER_PAGE = 50          # Pages with fewer chars → LOW
CID_RATIO_THRESHOLD = 0.15      # Pages with >15% (cid:XX) → LOW


def _assess_page_quality(text: str) -> dict:
    """Score a page's extracted text quality.

    Returns:
        {"char_count": int, "cid_ratio": float,
         "quality": "HIGH" | "LOW", "reason": str | None}
    """
    char_count = len(text.strip())

    # (cid:XX) placeholders indicate a broken font encoding
    cid_chars = sum(len(m) for m in re.findall(r'\(cid:\d+\)', text))
    cid_ratio = cid_chars / max(char_count, 1)

    reason = None
    quality = "HIGH"
    if char_count < MIN_CHARS_PER_PAGE:
        quality = "LOW"
        reason = f"too few characters ({char_count})"
    elif cid_ratio > CID_RATIO_THRESHOLD:
        quality = "LOW"
        reason = f"high (cid:) ratio ({cid_ratio:.0%})"

    return {
        "char_count": char_count,
        "cid_ratio": round(cid_ratio, 3),
        "quality": quality,
        "reason": reason,
    }


def _overall_quality(pages: list[dict]) -> str:
    if not pages:
        return "EMPTY"
    low = sum(1 for p in pages if p["quality"]["quality"] == "LOW")
    if low == 0:
        return "HIGH"
    if low == len(pages):
        return "LOW"
    return "MIXED"


def _extract(source, label: str) -> dict:
    pages = []
    try:
        with pdfplumber.open(source) as pdf:
            for i, page in enumerate(pdf.pages):
                page_text = page.extract_text() or ""
                pages.append({
                    "page_number": i + 1,
                    "text": page_text,
                    "quality": _assess_page_quality(page_text),
                })
    except Exception as e:
        logger.error(f"pdfplumber failed on {label}: {e}")
        raise UnreadableDocumentError(f"Could not read {label}: {e}") from e

    full_text = PAGE_SEPARATOR.join(p["text"] for p in pages)
    quality = _overall_quality(pages)
    low_pages = [p["page_number"] for p in pages if p["quality"]["quality"] == "LOW"]
    if low_pages:
        logger.warning(f"[{label}] {len(low_pages)} low-quality page(s): {low_pages[:10]}")

    logger.info(f"[{label}] {len(pages)} page(s), {len(full_text):,} chars, quality {quality}")
    return {
        "total_pages": len(pages),
        "pages": pages,
        "full_text": full_text,
        "extraction_quality": quality,
    }


def extract_text_from_bytes(content: bytes, filename: str = "document.pdf") -> dict:
    """Extract text from an in-memory PDF.

    Returns:
        {
            "total_pages": int,
            "pages": [{"page_number": 1, "text": "...", "quality": {...}}],
            "full_text": "pages joined by form feed",
            "extraction_quality": "HIGH"|"MIXED"|"LOW"|"EMPTY",
        }
    """
    return _extract(io.BytesIO(content), filename)

