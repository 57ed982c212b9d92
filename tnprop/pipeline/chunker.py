"""Token-bounded document chunking.

Splits raw PDF text into segments that each fit one extraction request.
Split points prefer natural document boundaries (blank-line runs, form
feeds, horizontal rules) and fall back to a hard cut.  Segments are
contiguous: joining them in order gives back the source text exactly.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from tnprop.config import (
    CHARS_PER_TOKEN, CHUNK_DELIMITERS, CHUNK_MIN_FILL_RATIO, CHUNK_TOKEN_BANDS,
)
from tnprop.pipeline.errors import ChunkingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Segment:
    """A contiguous slice of the source text."""

    index: int
    text: str

    @property
    def estimated_tokens(self) -> int:
        return estimate_tokens(self.text)


def estimate_tokens(text: str) -> int:
    """Rough token count: ``ceil(len / 2.5)``."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def choose_segment_budget(total_tokens: int, bands: list | None = None) -> int:
    """Pick a per-segment token budget for a document of ``total_tokens``.

    ``bands`` is a list of ``(max_document_tokens, tokens_per_segment)``
    sorted by ceiling; a ``None`` ceiling matches everything.
    """
    for ceiling, budget in bands or CHUNK_TOKEN_BANDS:
        if ceiling is None or total_tokens <= ceiling:
            return int(budget)
    # Table without an open-ended band: reuse the last budget
    return int((bands or CHUNK_TOKEN_BANDS)[-1][1])


def _find_split_point(text: str, start: int, chars_per_segment: int) -> int:
    """Return the length of the segment that begins at ``start``.

    Delimiters are tried in priority order.  A delimiter is searched
    backward from ``chars_per_segment``; it qualifies when the cut (just
    after the delimiter) lands in ``[70% of target, target]``.
    """
    min_split = chars_per_segment * CHUNK_MIN_FILL_RATIO
    for delimiter in CHUNK_DELIMITERS:
        # Latest occurrence that still ends inside the window
        idx = text.rfind(delimiter, start, start + chars_per_segment)
        if idx < 0:
            continue
        split = idx - start + len(delimiter)
        if min_split <= split <= chars_per_segment:
            return split
    return chars_per_segment


def split_text(text: str, max_tokens_per_segment: int) -> list[Segment]:
    """Split ``text`` into ordered, non-empty segments.

    Each segment except possibly the last is at most
    ``max_tokens_per_segment * 2`` characters.

    Raises:
        ValueError: ``max_tokens_per_segment`` is below 1.
        ChunkingError: the segments do not reconstruct ``text``.
    """
    if max_tokens_per_segment < 1:
        raise ValueError(f"max_tokens_per_segment must be >= 1, got {max_tokens_per_segment}")
    if not text:
        return []

    chars_per_segment = max_tokens_per_segment * 2
    segments: list[Segment] = []
    pos = 0
    total = len(text)

    while total - pos > chars_per_segment:
        split = _find_split_point(text, pos, chars_per_segment)
        segments.append(Segment(index=len(segments), text=text[pos:pos + split]))
        pos += split

    segments.append(Segment(index=len(segments), text=text[pos:]))

    if "".join(s.text for s in segments) != text:
        raise ChunkingError(
            f"Segments do not reconstruct source text ({len(segments)} segments, {total:,} chars)"
        )

    logger.info(
        f"Chunker: {total:,} chars (~{estimate_tokens(text):,} tokens) → "
        f"{len(segments)} segment(s) at ≤{chars_per_segment:,} chars"
    )
    return segments
