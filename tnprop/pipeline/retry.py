"""Per-segment retry with exponential backoff."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from tnprop.config import SEGMENT_MAX_RETRIES
from tnprop.pipeline.chunker import estimate_tokens
from tnprop.pipeline.errors import ExtractionError, SegmentExhaustedError
from tnprop.pipeline.extractors.base import BaseSegmentExtractor

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


@dataclass
class SegmentResult:
    """Outcome of one successful segment extraction."""

    segment_index: int
    records: list[dict] = field(default_factory=list)
    estimated_tokens: int = 0
    duration_seconds: float = 0.0
    attempts: int = 1


def backoff_seconds(attempt: int) -> float:
    """Delay after failed attempt ``attempt`` (1-based): 2s, 4s, 8s, ..."""
    return float(2 ** attempt)


async def extract_with_retry(
    extractor: BaseSegmentExtractor,
    segment_text: str,
    segment_index: int,
    max_retries: int = SEGMENT_MAX_RETRIES,
    sleep: SleepFn = asyncio.sleep,
    total_segments: int | None = None,
) -> SegmentResult:
    """Run ``extractor`` on one segment, retrying failed attempts.

    At most ``max_retries`` attempts are made; there is no sleep after the
    last one.  Only ``ExtractionError`` is retried; anything else is a bug
    and propagates untouched.

    Raises:
        SegmentExhaustedError: every attempt failed; the last extraction
            error is chained as ``__cause__``.
    """
    attempts = max(1, max_retries)
    label = f"segment {segment_index + 1}" + (f"/{total_segments}" if total_segments else "")
    last_error: ExtractionError | None = None

    for attempt in range(1, attempts + 1):
        t0 = time.monotonic()
        try:
            records = await extractor.extract(segment_text, task_label=label)
        except ExtractionError as e:
            last_error = e
            logger.warning(f"[{label}] Attempt {attempt}/{attempts} failed: {e}")
            if attempt < attempts:
                delay = backoff_seconds(attempt)
                logger.info(f"[{label}] Retrying in {delay:.0f}s")
                await sleep(delay)
            continue

        return SegmentResult(
            segment_index=segment_index,
            records=records,
            estimated_tokens=estimate_tokens(segment_text),
            duration_seconds=time.monotonic() - t0,
            attempts=attempt,
        )

    raise SegmentExhaustedError(segment_index, attempts, last_error) from last_error
