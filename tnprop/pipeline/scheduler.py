"""Wave-based segment scheduling with bounded concurrency.

Segments run in index-ordered waves.  Every segment inside a wave is in
flight at once; the wave is joined all-settled so one exhausted segment
never cancels its siblings.  Wave k+1 starts only after wave k has fully
resolved and the inter-wave delay has elapsed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from tnprop.config import (
    SCHEDULE_BANDS, MAX_CONCURRENT_SEGMENTS, SEGMENT_MAX_RETRIES,
    EXTRACT_PROGRESS_START, EXTRACT_PROGRESS_END,
)
from tnprop.pipeline.chunker import Segment
from tnprop.pipeline.dedup import dedupe_records
from tnprop.pipeline.errors import PipelineFatalError, SegmentExhaustedError
from tnprop.pipeline.extractors.base import BaseSegmentExtractor
from tnprop.pipeline.progress import ProgressCallback, ProgressStep, noop_progress
from tnprop.pipeline.retry import SegmentResult, SleepFn, extract_with_retry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchPlan:
    batch_size: int
    delay_seconds: float


@dataclass
class RunStats:
    """Bookkeeping for one scheduler run."""

    segments: int = 0
    succeeded: int = 0
    failed_segments: list[int] = field(default_factory=list)
    estimated_tokens: int = 0
    records_before_dedup: int = 0
    records_after_dedup: int = 0
    waves: int = 0

    def to_dict(self) -> dict:
        return {
            "segments": self.segments,
            "succeeded": self.succeeded,
            "failed_segments": list(self.failed_segments),
            "estimated_tokens": self.estimated_tokens,
            "records_before_dedup": self.records_before_dedup,
            "records_after_dedup": self.records_after_dedup,
            "waves": self.waves,
        }


def choose_batch_plan(
    segment_count: int,
    bands: list | None = None,
    max_concurrency: int = MAX_CONCURRENT_SEGMENTS,
) -> BatchPlan:
    """Pick wave size and inter-wave delay for ``segment_count`` segments.

    ``bands`` rows are ``(max_segments, batch_size, delay_seconds)``; a
    ``None`` ceiling matches everything and a ``None`` batch size means
    "all segments in one wave".  The result never exceeds
    ``max_concurrency``.
    """
    table = bands or SCHEDULE_BANDS
    chosen = table[-1]
    for band in table:
        ceiling = band[0]
        if ceiling is None or segment_count <= ceiling:
            chosen = band
            break

    _, batch_size, delay = chosen
    size = max(1, segment_count) if batch_size is None else int(batch_size)
    size = max(1, min(size, max_concurrency))
    return BatchPlan(batch_size=size, delay_seconds=float(delay))


def interpolate_percent(processed: int, total: int,
                        start: int = EXTRACT_PROGRESS_START, end: int = EXTRACT_PROGRESS_END) -> int:
    """Map ``processed / total`` onto the ``[start, end]`` progress window."""
    if total <= 0:
        return end
    return start + int((end - start) * processed / total)


class BatchScheduler:
    """Run segment extractions in waves and merge their records."""

    def __init__(
        self,
        extractor: BaseSegmentExtractor,
        bands: list | None = None,
        max_concurrency: int = MAX_CONCURRENT_SEGMENTS,
        max_retries: int = SEGMENT_MAX_RETRIES,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.extractor = extractor
        self.bands = bands
        self.max_concurrency = max_concurrency
        self.max_retries = max_retries
        self._sleep = sleep
        self.last_stats: RunStats | None = None

    async def run(self, segments: list[Segment], on_progress: ProgressCallback | None = None) -> list[dict]:
        """Extract every segment and return the deduplicated records.

        Raises:
            PipelineFatalError: there was at least one segment and none
                of them produced a result.
        """
        cb = on_progress or noop_progress
        total = len(segments)
        stats = RunStats(segments=total)
        self.last_stats = stats
        if not segments:
            return []

        plan = choose_batch_plan(total, self.bands, self.max_concurrency)
        logger.info(
            f"Scheduler: {total} segment(s), batch size {plan.batch_size}, "
            f"{plan.delay_seconds:.1f}s between waves"
        )

        results: list[SegmentResult] = []
        processed = 0

        async def _settle(segment: Segment) -> SegmentResult:
            nonlocal processed
            try:
                return await extract_with_retry(
                    self.extractor, segment.text, segment.index,
                    max_retries=self.max_retries, sleep=self._sleep,
                    total_segments=total,
                )
            finally:
                processed += 1
                cb(
                    ProgressStep.EXTRACTING.value,
                    interpolate_percent(processed, total),
                    f"Processed segment {processed}/{total}",
                )

        for wave_start in range(0, total, plan.batch_size):
            wave = segments[wave_start:wave_start + plan.batch_size]
            stats.waves += 1
            settled = await asyncio.gather(*(_settle(s) for s in wave), return_exceptions=True)

            for segment, outcome in zip(wave, settled):
                label = f"segment {segment.index + 1}/{total}"
                if isinstance(outcome, SegmentExhaustedError):
                    logger.error(f"[{label}] Giving up: {outcome}")
                    stats.failed_segments.append(segment.index)
                elif isinstance(outcome, BaseException):
                    logger.error(f"[{label}] Unexpected failure", exc_info=outcome)
                    stats.failed_segments.append(segment.index)
                else:
                    results.append(outcome)
                    stats.succeeded += 1
                    stats.estimated_tokens += outcome.estimated_tokens
                    logger.info(
                        f"[{label}] {len(outcome.records)} record(s) in "
                        f"{outcome.duration_seconds:.1f}s (~{outcome.estimated_tokens:,} tokens)"
                    )

            if wave_start + plan.batch_size < total:
                cb(
                    ProgressStep.WAITING.value,
                    interpolate_percent(processed, total),
                    f"Waiting {plan.delay_seconds:.0f}s before next batch...",
                )
                await self._sleep(plan.delay_seconds)

        if stats.succeeded == 0:
            raise PipelineFatalError(
                f"Extraction failed for all {total} segment(s); no records could be recovered"
            )

        # Wave order, then segment order within the wave
        results.sort(key=lambda r: r.segment_index)
        merged = [record for r in results for record in r.records]
        unique = dedupe_records(merged)
        stats.records_before_dedup = len(merged)
        stats.records_after_dedup = len(unique)
        logger.info(
            f"Scheduler: {stats.succeeded}/{total} segment(s) succeeded, "
            f"{len(merged)} record(s) → {len(unique)} after dedup (~{stats.estimated_tokens:,} tokens)"
        )
        return unique
