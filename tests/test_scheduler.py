"""Tests for wave scheduling, partial-failure handling and merge order."""

import asyncio

import pytest

from tnprop.pipeline.chunker import Segment
from tnprop.pipeline.errors import PipelineFatalError
from tnprop.pipeline.extractors.base import BaseSegmentExtractor
from tnprop.pipeline.scheduler import (
    BatchPlan,
    BatchScheduler,
    choose_batch_plan,
    interpolate_percent,
)


def _segments(n: int) -> list[Segment]:
    return [Segment(index=i, text=f"[{i}] rows") for i in range(n)]


def _record(i: int) -> dict:
    return {"surveyNumber": str(i), "documentNumber": f"D{i}"}


class ConcurrencyProbe(BaseSegmentExtractor):
    """Tracks how many extractions are in flight at once."""

    def __init__(self, delays: dict[int, int] | None = None):
        self.in_flight = 0
        self.max_in_flight = 0
        self.started: list[int] = []
        self.delays = delays or {}

    async def extract(self, segment_text, task_label=""):
        idx = int(segment_text[1:segment_text.index("]")])
        self.started.append(idx)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        for _ in range(self.delays.get(idx, 1)):
            await asyncio.sleep(0)
        self.in_flight -= 1
        return [_record(idx)]


# ═══════════════════════════════════════════════════
# Policy helpers
# ═══════════════════════════════════════════════════

class TestChooseBatchPlan:

    @pytest.mark.parametrize("count,expected", [
        (1, BatchPlan(1, 1.0)),
        (4, BatchPlan(4, 1.0)),
        (5, BatchPlan(5, 1.0)),
        (6, BatchPlan(3, 2.0)),
        (15, BatchPlan(3, 2.0)),
        (16, BatchPlan(2, 3.0)),
        (200, BatchPlan(2, 3.0)),
    ])
    def test_default_bands(self, count, expected):
        assert choose_batch_plan(count) == expected

    def test_hard_ceiling(self):
        plan = choose_batch_plan(40, bands=[(None, None, 0.5)], max_concurrency=5)
        assert plan.batch_size == 5

    def test_batch_size_never_zero(self):
        assert choose_batch_plan(0).batch_size == 1


def test_interpolate_percent():
    assert interpolate_percent(0, 4) == 20
    assert interpolate_percent(2, 4) == 52
    assert interpolate_percent(4, 4) == 85
    assert interpolate_percent(0, 0) == 85


# ═══════════════════════════════════════════════════
# BatchScheduler.run
# ═══════════════════════════════════════════════════

class TestBatchScheduler:

    @pytest.mark.asyncio
    async def test_empty_input(self, scripted_extractor, fake_sleep):
        scheduler = BatchScheduler(scripted_extractor(), sleep=fake_sleep)
        assert await scheduler.run([]) == []
        assert scheduler.last_stats.segments == 0

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_other_segments(self, scripted_extractor, fake_sleep, transport_error):
        extractor = scripted_extractor({
            "[0]": [_record(0)],
            "[1]": transport_error,
            "[2]": [_record(2)],
        })
        scheduler = BatchScheduler(extractor, sleep=fake_sleep)
        records = await scheduler.run(_segments(3))

        assert records == [_record(0), _record(2)]
        stats = scheduler.last_stats
        assert stats.failed_segments == [1]
        assert stats.succeeded == 2
        # Segment 1: three attempts, backoff 2s then 4s
        assert sorted(fake_sleep.calls) == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_all_segments_failing_is_fatal(self, scripted_extractor, fake_sleep, transport_error):
        extractor = scripted_extractor({"rows": transport_error})
        with pytest.raises(PipelineFatalError):
            await BatchScheduler(extractor, sleep=fake_sleep).run(_segments(2))

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, scripted_extractor, fake_sleep):
        extractor = scripted_extractor({"[0]": RuntimeError("boom"), "[1]": [_record(1)]})
        scheduler = BatchScheduler(extractor, sleep=fake_sleep)
        assert await scheduler.run(_segments(2)) == [_record(1)]
        assert scheduler.last_stats.failed_segments == [0]

    @pytest.mark.asyncio
    async def test_zero_records_is_success(self, scripted_extractor, fake_sleep):
        scheduler = BatchScheduler(scripted_extractor(), sleep=fake_sleep)
        assert await scheduler.run(_segments(2)) == []
        assert scheduler.last_stats.succeeded == 2

    @pytest.mark.asyncio
    async def test_waves_respect_batch_size_and_delay(self, fake_sleep):
        probe = ConcurrencyProbe()
        scheduler = BatchScheduler(probe, sleep=fake_sleep)
        records = await scheduler.run(_segments(12))

        assert len(records) == 12
        assert probe.max_in_flight <= 3
        assert scheduler.last_stats.waves == 4
        assert fake_sleep.calls == [2.0, 2.0, 2.0]
        # Wave k+1 starts only after wave k: start order is wave-grouped
        waves = [sorted(probe.started[i:i + 3]) for i in range(0, 12, 3)]
        assert waves == [[0, 1, 2], [3, 4, 5], [6, 7, 8], [9, 10, 11]]

    @pytest.mark.asyncio
    async def test_concurrency_never_exceeds_ceiling(self, fake_sleep):
        probe = ConcurrencyProbe()
        scheduler = BatchScheduler(probe, bands=[(None, None, 0.0)], max_concurrency=5, sleep=fake_sleep)
        await scheduler.run(_segments(20))
        assert probe.max_in_flight == 5

    @pytest.mark.asyncio
    async def test_merge_follows_segment_order(self, fake_sleep):
        # Segment 0 finishes last within its wave
        probe = ConcurrencyProbe(delays={0: 10})
        records = await BatchScheduler(probe, sleep=fake_sleep).run(_segments(4))
        assert records == [_record(i) for i in range(4)]

    @pytest.mark.asyncio
    async def test_duplicates_across_segments_removed(self, scripted_extractor, fake_sleep):
        dup = {"surveyNumber": "12", "documentNumber": "D1"}
        extractor = scripted_extractor({"[0]": [dup], "[1]": [dup]})
        scheduler = BatchScheduler(extractor, sleep=fake_sleep)
        assert await scheduler.run(_segments(2)) == [dup]
        assert scheduler.last_stats.records_before_dedup == 2
        assert scheduler.last_stats.records_after_dedup == 1

    @pytest.mark.asyncio
    async def test_progress_is_monotonic(self, fake_sleep):
        events = []
        probe = ConcurrencyProbe()
        await BatchScheduler(probe, sleep=fake_sleep).run(
            _segments(7), on_progress=lambda step, pct, msg: events.append((step, pct)),
        )
        percents = [pct for _, pct in events]
        assert percents == sorted(percents)
        assert events[-1] == ("extracting", 85)
        assert ("waiting", interpolate_percent(3, 7)) in events
