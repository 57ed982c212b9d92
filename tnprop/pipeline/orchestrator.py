"""Document pipeline: PDF bytes in, deduplicated transaction records out.

Stages:
  1. Cache lookup by content hash (a hit skips everything below)
  2. Text extraction (pdfplumber)
  3. Extractor capability check
  4. Single-shot or chunked extraction through the batch scheduler
  5. Cache store
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from tnprop.config import CACHE_ENABLED, SINGLE_SHOT_MAX_TOKENS
from tnprop.pipeline.cache import ResultCache, hash_bytes
from tnprop.pipeline.chunker import Segment, choose_segment_budget, estimate_tokens, split_text
from tnprop.pipeline.extractors import BaseSegmentExtractor, get_segment_extractor
from tnprop.pipeline.ingestion import extract_text_from_bytes
from tnprop.pipeline.progress import ProgressCallback, ProgressStep, noop_progress
from tnprop.pipeline.scheduler import BatchScheduler

logger = logging.getLogger(__name__)


@dataclass
class ExtractionOutcome:
    records: list[dict]
    total_pages: int = 0
    cached: bool = False
    file_hash: str = ""
    stats: dict = field(default_factory=dict)


def plan_segments(text: str, single_shot_max_tokens: int | None = None) -> list[Segment]:
    """Whole text as one segment when it is small enough, otherwise chunk it."""
    if not text.strip():
        return []
    if single_shot_max_tokens is None:
        single_shot_max_tokens = SINGLE_SHOT_MAX_TOKENS
    total_tokens = estimate_tokens(text)
    if total_tokens <= single_shot_max_tokens:
        logger.info(f"Single-shot extraction (~{total_tokens:,} tokens)")
        return [Segment(index=0, text=text)]
    budget = choose_segment_budget(total_tokens)
    logger.info(f"Chunked extraction: ~{total_tokens:,} tokens, {budget:,} tokens per segment")
    return split_text(text, budget)


async def extract_records(
    text: str,
    extractor: BaseSegmentExtractor,
    on_progress: ProgressCallback | None = None,
    scheduler: BatchScheduler | None = None,
) -> tuple[list[dict], dict]:
    """Run segment extraction over ``text``.

    Returns ``(records, stats)``.  Raises ``PipelineFatalError`` when every
    segment failed.
    """
    cb = on_progress or noop_progress
    cb(ProgressStep.ANALYZING.value, 15, "Analyzing document structure...")

    segments = plan_segments(text)
    if not segments:
        logger.warning("Document has no extractable text")
        cb(ProgressStep.PROCESSING.value, 90, "No text found in document")
        return [], {"segments": 0}

    cb(ProgressStep.EXTRACTING.value, 20, f"Extracting transactions from {len(segments)} segment(s)...")
    scheduler = scheduler or BatchScheduler(extractor)
    records = await scheduler.run(segments, on_progress=cb)

    stats = scheduler.last_stats.to_dict() if scheduler.last_stats else {}
    cb(ProgressStep.PROCESSING.value, 90, f"Processing {len(records)} transaction(s)...")
    return records, stats


async def process_document(
    content: bytes,
    filename: str,
    on_progress: ProgressCallback | None = None,
    cache: ResultCache | None = None,
    extractor: BaseSegmentExtractor | None = None,
) -> ExtractionOutcome:
    """Full pipeline for one uploaded PDF.

    Raises:
        ExtractorNotConfiguredError: no usable extractor (checked before
            any model request is made).
        PipelineFatalError: every segment failed.
    """
    cb = on_progress or noop_progress
    t0 = time.monotonic()
    file_hash = hash_bytes(content)

    if cache is None and CACHE_ENABLED:
        cache = ResultCache()

    if cache is not None:
        cached = cache.get(file_hash)
        if cached is not None:
            cb(ProgressStep.COMPLETE.value, 100, f"Loaded {len(cached)} transaction(s) from cache")
            return ExtractionOutcome(records=cached, cached=True, file_hash=file_hash)

    if extractor is None:
        extractor = get_segment_extractor()

    cb(ProgressStep.PARSING.value, 5, f"Reading {filename}...")
    parsed = await asyncio.to_thread(extract_text_from_bytes, content, filename)
    cb(
        ProgressStep.PARSING.value, 10,
        f"Read {parsed['total_pages']} page(s) ({parsed['extraction_quality']} text quality)",
    )

    records, stats = await extract_records(parsed["full_text"], extractor, cb)
    stats["extraction_quality"] = parsed["extraction_quality"]

    failed = stats.get("failed_segments") or []
    if cache is not None and failed:
        logger.warning(f"[{filename}] Not caching partial result ({len(failed)} segment(s) failed)")
    elif cache is not None:
        cache.set(file_hash, records, filename)

    elapsed = time.monotonic() - t0
    logger.info(f"[{filename}] {len(records)} record(s) from {parsed['total_pages']} page(s) in {elapsed:.1f}s")
    cb(ProgressStep.COMPLETE.value, 100, f"Extracted {len(records)} transaction(s)")
    return ExtractionOutcome(
        records=records,
        total_pages=parsed["total_pages"],
        file_hash=file_hash,
        stats=stats,
    )
