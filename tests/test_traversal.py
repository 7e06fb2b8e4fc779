"""
Tests for traversal module.

Tests:
- Seed expansion round trip
- Draining, found accumulation, FIFO order
- Missing queue vs exhausted queue
- Stop/resume and task cancellation keep checkpoints
- Checkpoint failures do not abort the run
"""

import asyncio
import itertools

import pytest

from queue_store import PersistenceError, QueueStore
from traversal import MissingQueueError, SeedExpander, TraversalController


def run(coro):
    return asyncio.run(coro)


class TestSeedExpander:

    def test_expand_round_trip(self, tmp_store):
        count = SeedExpander(tmp_store).expand("abc")
        stored = tmp_store.get("abc")
        assert count == 6
        assert sorted(stored) == sorted("".join(p) for p in itertools.permutations("abc"))

    def test_expand_replaces_previous_entry(self, tmp_store):
        tmp_store.store("ab", ["stale"])
        SeedExpander(tmp_store).expand("ab")
        assert sorted(tmp_store.get("ab")) == ["ab", "ba"]

    def test_expand_keeps_duplicate_orderings(self, tmp_store):
        SeedExpander(tmp_store).expand("aab")
        assert sorted(tmp_store.get("aab")) == ["aab", "aab", "aba", "aba", "baa", "baa"]

    def test_empty_seed_rejected(self, tmp_store):
        with pytest.raises(ValueError, match="empty"):
            SeedExpander(tmp_store).expand("")


class TestTraversalController:

    def test_found_only_for_second_candidate(self, tmp_store, scripted_lookup):
        tmp_store.store("seed", ["c1", "c2", "c3"])
        lookup = scripted_lookup(found=["c2"])
        found = run(TraversalController(tmp_store, lookup, pacing_s=0).traverse("seed"))
        assert len(found) == 1
        assert found[0]["data"]["id"] == "c2"
        assert lookup.calls == ["c1", "c2", "c3"]
        assert tmp_store.get("seed") == []

    def test_expand_then_drain(self, tmp_store, scripted_lookup):
        SeedExpander(tmp_store).expand("abc")
        lookup = scripted_lookup(found=["cab"])
        found = run(TraversalController(tmp_store, lookup, pacing_s=0).traverse("abc"))
        assert [f["data"]["id"] for f in found] == ["cab"]
        assert len(lookup.calls) == 6
        assert tmp_store.get("abc") == []

    def test_missing_queue_raises_before_any_lookup(self, tmp_store, scripted_lookup):
        lookup = scripted_lookup()
        with pytest.raises(MissingQueueError) as exc:
            run(TraversalController(tmp_store, lookup, pacing_s=0).traverse("nope"))
        assert exc.value.seed == "nope"
        assert lookup.calls == []

    def test_exhausted_queue_returns_empty(self, tmp_store, scripted_lookup):
        tmp_store.store("seed", [])
        lookup = scripted_lookup()
        assert run(TraversalController(tmp_store, lookup, pacing_s=0).traverse("seed")) == []
        assert lookup.calls == []

    def test_checkpoint_after_every_lookup(self, tmp_store, scripted_lookup):
        tmp_store.store("seed", ["a", "b", "c"])
        seen = []
        lookup = scripted_lookup(on_call=lambda c: seen.append(tmp_store.get("seed")))
        run(TraversalController(tmp_store, lookup, pacing_s=0).traverse("seed"))
        # stored queue as observed at the start of each lookup
        assert seen == [["a", "b", "c"], ["b", "c"], ["c"]]

    def test_transport_errors_continue(self, tmp_store, scripted_lookup):
        tmp_store.store("seed", ["a", "b", "c"])
        lookup = scripted_lookup(found=["c"], failing=["a", "b"])
        found = run(TraversalController(tmp_store, lookup, pacing_s=0).traverse("seed"))
        assert [f["data"]["id"] for f in found] == ["c"]
        assert tmp_store.get("seed") == []

    def test_on_found_callback(self, tmp_store, scripted_lookup):
        tmp_store.store("seed", ["a", "b"])
        hits = []
        controller = TraversalController(tmp_store, scripted_lookup(found=["a", "b"]), pacing_s=0,
                                         on_found=lambda r: hits.append(r.candidate))
        run(controller.traverse("seed"))
        assert hits == ["a", "b"]

    def test_other_seeds_untouched(self, tmp_store, scripted_lookup):
        tmp_store.store("other", ["x", "y"])
        tmp_store.store("seed", ["a"])
        run(TraversalController(tmp_store, scripted_lookup(), pacing_s=0).traverse("seed"))
        assert tmp_store.get("other") == ["x", "y"]

    def test_negative_pacing_rejected(self, tmp_store, scripted_lookup):
        with pytest.raises(ValueError):
            TraversalController(tmp_store, scripted_lookup(), pacing_s=-1)


class TestResume:

    def test_stop_then_resume_matches_uninterrupted_run(self, tmp_path, scripted_lookup):
        queue = ["q1", "q2", "q3", "q4", "q5"]
        hits = ["q2", "q4", "q5"]

        full_store = QueueStore(tmp_path / "full.json")
        full_store.store("s", queue)
        expected = run(TraversalController(full_store, scripted_lookup(found=hits), pacing_s=0).traverse("s"))

        store = QueueStore(tmp_path / "resumed.json")
        store.store("s", queue)

        async def interrupted():
            stop = asyncio.Event()

            def stop_after_second(candidate):
                if candidate == "q2":
                    stop.set()

            lookup = scripted_lookup(found=hits, on_call=stop_after_second)
            return await TraversalController(store, lookup, pacing_s=0).traverse("s", stop=stop)

        first = run(interrupted())
        assert store.get("s") == ["q3", "q4", "q5"]

        second_lookup = scripted_lookup(found=hits)
        second = run(TraversalController(store, second_lookup, pacing_s=0).traverse("s"))
        assert second_lookup.calls == ["q3", "q4", "q5"]
        assert first + second == expected
        assert store.get("s") == []

    def test_cancel_during_pacing_still_checkpoints(self, tmp_store, scripted_lookup):
        tmp_store.store("seed", ["a", "b", "c"])

        async def scenario():
            lookup = scripted_lookup()
            controller = TraversalController(tmp_store, lookup, pacing_s=30)
            task = asyncio.ensure_future(controller.traverse("seed"))
            while not lookup.calls:
                await asyncio.sleep(0)
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        run(scenario())
        assert tmp_store.get("seed") == ["b", "c"]

    def test_cancel_during_lookup_keeps_candidate(self, tmp_store):
        tmp_store.store("seed", ["a", "b"])

        async def scenario():
            started = asyncio.Event()

            async def hanging_lookup(candidate):
                started.set()
                await asyncio.sleep(30)

            task = asyncio.ensure_future(
                TraversalController(tmp_store, hanging_lookup, pacing_s=0).traverse("seed"))
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        run(scenario())
        assert tmp_store.get("seed") == ["a", "b"]


class FlakyStore(QueueStore):
    """Fails the first checkpoint write."""

    def __init__(self, path):
        super().__init__(path)
        self.failures = 0
        self.armed = False

    def store(self, key, value):
        if self.armed and self.failures == 0:
            self.failures += 1
            raise PersistenceError("disk full")
        super().store(key, value)


class TestCheckpointFailure:

    def test_persistence_error_is_logged_and_run_continues(self, tmp_path, scripted_lookup, caplog):
        store = FlakyStore(tmp_path / "storage.json")
        store.store("seed", ["a", "b", "c"])
        store.armed = True
        lookup = scripted_lookup(found=["c"])
        with caplog.at_level("ERROR"):
            found = run(TraversalController(store, lookup, pacing_s=0).traverse("seed"))
        assert lookup.calls == ["a", "b", "c"]
        assert len(found) == 1
        assert store.get("seed") == []
        assert "Checkpoint failed" in caplog.text


class TestFoundHandlerFailure:

    def test_handler_error_is_logged_and_run_continues(self, tmp_store, scripted_lookup, caplog):
        tmp_store.store("seed", ["a", "b", "c"])

        def failing_handler(result):
            raise OSError("disk full")

        lookup = scripted_lookup(found=["a"])
        controller = TraversalController(tmp_store, lookup, pacing_s=0, on_found=failing_handler)
        with caplog.at_level("ERROR"):
            found = run(controller.traverse("seed"))
        assert lookup.calls == ["a", "b", "c"]
        assert [f["data"]["id"] for f in found] == ["a"]
        assert tmp_store.get("seed") == []
        assert "Found handler failed for a" in caplog.text
