"""
Batch processor tests

Per-item isolation, ordered results, monotonic progress, chunked
concurrency, sequential pacing, cancellation and per-item timeouts.
"""
import asyncio
import time

import pytest

from launchcheck.errors import BatchValidationError
from launchcheck.models.domain import BatchItemResult, ProgressEventType
from launchcheck.services.batch import BatchProcessor, RateLimiter


def make_processor(**kwargs):
    options = dict(
        max_items=50,
        batch_size=2,
        batch_pause=0,
        item_delay=0,
        rate_limiter=RateLimiter(max_calls=1000),
    )
    options.update(kwargs)
    return BatchProcessor(**options)


def ok(listing_id, message="Done"):
    return BatchItemResult(listing_id=listing_id, success=True, message=message)


async def collect(processor, ids, handler, **kwargs):
    return [event async for event in processor.run(ids, "apply_tags", handler, **kwargs)]


def run(coro):
    return asyncio.run(coro)


# =============================================================================
# VALIDATION
# =============================================================================

class TestValidation:

    def test_empty_batch(self):
        with pytest.raises(BatchValidationError, match="No products selected"):
            make_processor().validate([])

    def test_too_many(self):
        with pytest.raises(BatchValidationError, match="Maximum 3 products per batch"):
            make_processor(max_items=3).validate(["a", "b", "c", "d"])

    def test_malformed_ids(self):
        with pytest.raises(BatchValidationError, match="Invalid productIds format"):
            make_processor().validate(["a", 42])

    def test_run_rejects_before_first_event(self):
        async def handler(listing_id):
            raise AssertionError("should not run")

        with pytest.raises(BatchValidationError):
            run(collect(make_processor(), [], handler))


# =============================================================================
# EVENTS AND RESULTS
# =============================================================================

class TestEvents:

    def test_event_sequence(self):
        async def handler(listing_id):
            return ok(listing_id)

        events = run(collect(make_processor(), ["a", "b", "c"], handler))

        assert events[0].type == ProgressEventType.START
        assert events[0].to_dict() == {"type": "start", "total": 3}
        assert events[-1].type == ProgressEventType.COMPLETE
        assert sum(1 for e in events if e.type == ProgressEventType.PROCESSING) == 3
        assert sum(1 for e in events if e.type == ProgressEventType.PROGRESS) == 3

    def test_processing_precedes_progress_per_item(self):
        async def handler(listing_id):
            return ok(listing_id)

        events = run(collect(make_processor(), ["a", "b", "c"], handler))
        for listing_id in ("a", "b", "c"):
            kinds = [e.type for e in events if e.listing_id == listing_id]
            assert kinds == [ProgressEventType.PROCESSING, ProgressEventType.PROGRESS]

    def test_one_failure_does_not_stop_the_batch(self):
        async def handler(listing_id):
            if listing_id == "b":
                raise RuntimeError("Catalog timed out")
            return ok(listing_id)

        events = run(collect(make_processor(), ["a", "b", "c"], handler))
        complete = events[-1].to_dict()

        assert complete["successCount"] == 2
        assert complete["errorCount"] == 1
        assert complete["totalProcessed"] == 3
        assert [r["productId"] for r in complete["results"]] == ["a", "b", "c"]
        assert complete["results"][1] == {
            "productId": "b", "success": False, "message": "Catalog timed out", "noop": False,
        }

    def test_exception_without_message(self):
        async def handler(listing_id):
            raise ValueError()

        summary = run(make_processor().run_to_summary(["a"], "apply_tags", handler))
        assert summary.results[0].message == "Unknown error"

    def test_not_found_item_is_reported(self):
        async def handler(listing_id):
            if listing_id == "missing":
                return BatchItemResult(listing_id=listing_id, success=False, message="Product not found")
            return ok(listing_id)

        summary = run(make_processor().run_to_summary(["a", "missing"], "apply_tags", handler))
        assert summary.succeeded == 1
        assert summary.failed == 1
        assert summary.results[1].message == "Product not found"

    def test_progress_is_monotonic_when_items_finish_out_of_order(self):
        delays = {"a": 0.05, "b": 0.0, "c": 0.03, "d": 0.01}

        async def handler(listing_id):
            await asyncio.sleep(delays[listing_id])
            return ok(listing_id)

        events = run(collect(make_processor(batch_size=4), list(delays), handler))
        processed = [e.processed for e in events if e.type == ProgressEventType.PROGRESS]

        assert processed == [1, 2, 3, 4]
        assert [r.listing_id for r in events[-1].summary.results] == ["a", "b", "c", "d"]

    def test_concurrency_is_bounded_by_batch_size(self):
        active = 0
        peak = 0

        async def handler(listing_id):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return ok(listing_id)

        run(make_processor(batch_size=3).run_to_summary(list("abcdefg"), "apply_tags", handler))
        assert peak == 3

    def test_sequential_runs_one_at_a_time_in_order(self):
        order = []
        active = 0
        peak = 0

        async def handler(listing_id):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            order.append(listing_id)
            await asyncio.sleep(0.005)
            active -= 1
            return ok(listing_id)

        run(make_processor(batch_size=5).run_to_summary(["a", "b", "c"], "generate_all", handler, sequential=True))
        assert peak == 1
        assert order == ["a", "b", "c"]

    def test_noop_items_count_as_success(self):
        async def handler(listing_id):
            return BatchItemResult(listing_id=listing_id, success=True, message="Tags already applied", noop=True)

        summary = run(make_processor().run_to_summary(["a", "b"], "apply_tags", handler))
        assert summary.succeeded == 2
        assert all(r.noop for r in summary.results)


# =============================================================================
# CANCELLATION AND TIMEOUTS
# =============================================================================

class TestCancellation:

    def test_sequential_stops_before_next_item(self):
        cancel = asyncio.Event()
        seen = []

        async def handler(listing_id):
            seen.append(listing_id)
            if listing_id == "b":
                cancel.set()
            return ok(listing_id)

        async def scenario():
            return await make_processor().run_to_summary(
                ["a", "b", "c", "d"], "apply_tags", handler, sequential=True, cancel_event=cancel,
            )

        summary = run(scenario())
        assert seen == ["a", "b"]
        assert summary.cancelled
        assert summary.processed == 2
        assert [r.listing_id for r in summary.results] == ["a", "b"]

    def test_concurrent_finishes_in_flight_chunk(self):
        cancel = asyncio.Event()
        seen = []

        async def handler(listing_id):
            seen.append(listing_id)
            await asyncio.sleep(0.01)
            cancel.set()
            return ok(listing_id)

        async def scenario():
            return [e async for e in make_processor(batch_size=2).run(
                ["a", "b", "c", "d"], "apply_tags", handler, cancel_event=cancel,
            )]

        events = run(scenario())
        complete = events[-1].to_dict()
        assert sorted(seen) == ["a", "b"]
        assert complete["cancelled"] is True
        assert complete["totalProcessed"] == 2


class TestTimeouts:

    def test_slow_item_times_out(self):
        async def handler(listing_id):
            if listing_id == "slow":
                await asyncio.sleep(1)
            return ok(listing_id)

        summary = run(make_processor(item_timeout=0.05).run_to_summary(["fast", "slow"], "apply_tags", handler))
        assert summary.results[0].success
        assert summary.results[1].message == "Timed out"
        assert summary.failed == 1


class TestRateLimiter:

    def test_window_limits_calls(self):
        limiter = RateLimiter(max_calls=2, period=0.2)

        async def scenario():
            start = time.monotonic()
            for _ in range(3):
                await limiter.acquire()
            return time.monotonic() - start

        assert run(scenario()) >= 0.15

    def test_calls_within_budget_do_not_wait(self):
        limiter = RateLimiter(max_calls=5, period=10)

        async def scenario():
            start = time.monotonic()
            for _ in range(5):
                await limiter.acquire()
            return time.monotonic() - start

        assert run(scenario()) < 0.5
