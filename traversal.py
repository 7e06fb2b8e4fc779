# -*- coding: utf-8 -*-

"""
Seed expansion and resumable traversal.

SeedExpander: seed -> all character permutations -> stored under the seed key.

TraversalController: drains the stored queue for a seed, one lookup at a time:
  pop head -> lookup -> record if found -> pacing delay -> checkpoint remaining
The stored entry always holds the work still to do, so a run can be stopped
and resumed at any point; at most the in-flight candidate is looked up twice.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from lookup import LookupResult, LookupStatus
from permute import iter_permutations
from queue_store import PersistenceError, QueueStore

Lookup = Callable[[str], Awaitable[LookupResult]]


class MissingQueueError(RuntimeError):
    def __init__(self, seed: str):
        super().__init__(f"No queue stored for seed '{seed}'; run expand first")
        self.seed = seed


class SeedExpander:
    def __init__(self, store: QueueStore, logger: Optional[logging.Logger] = None):
        self.store = store
        self.log = logger or logging.getLogger(__name__)

    def expand(self, seed: str) -> int:
        if not seed:
            raise ValueError("seed is empty")
        candidates = ["".join(p) for p in iter_permutations(list(seed), len(seed))]
        self.store.store(seed, candidates)
        self.log.info("Expanded seed=%s into %s candidates (%s)", seed, len(candidates), self.store.path)
        return len(candidates)


class TraversalController:
    def __init__(
        self,
        store: QueueStore,
        lookup: Lookup,
        *,
        pacing_s: float = 1.0,
        on_found: Optional[Callable[[LookupResult], None]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if pacing_s < 0:
            raise ValueError("pacing_s must be >= 0")
        self.store = store
        self.lookup = lookup
        self.pacing_s = pacing_s
        self.log = logger or logging.getLogger(__name__)
        self.on_found = on_found

    async def traverse(self, seed: str, stop: Optional[asyncio.Event] = None) -> List[Dict[str, Any]]:
        """
        Drain the queue for `seed` and return the payloads of found candidates.

        Setting `stop` ends the run before the next lookup; the iteration in
        progress still completes and is checkpointed. Cancelling the task while
        a lookup is in flight leaves that candidate in the stored queue.
        """
        queue = self.store.get(seed)
        if queue is None:
            raise MissingQueueError(seed)

        found: List[Dict[str, Any]] = []
        transport_errors = 0
        processed = 0
        start_time = time.time()
        self.log.info("Traversing seed=%s remaining=%s", seed, len(queue))

        while queue:
            if stop is not None and stop.is_set():
                self.log.info("Stop requested; %s candidates left for seed=%s", len(queue), seed)
                break

            current = queue.pop(0)
            result = await self.lookup(current)
            processed += 1

            if result.found:
                self.log.info("%s found!", current)
                found.append(result.payload)
                self._notify_found(result)
            elif result.status is LookupStatus.TRANSPORT_ERROR:
                transport_errors += 1
                self.log.warning("%s lookup failed (%s); counted as not found", current, result.error)
            else:
                self.log.info("%s not found", current)

            try:
                await asyncio.sleep(self.pacing_s)
            finally:
                self._checkpoint(seed, queue)

            elapsed = max(time.time() - start_time, 1e-6)
            self.log.debug("Progress: processed=%s remaining=%s found=%s rate=%.2f/s",
                           processed, len(queue), len(found), processed / elapsed)

        self.log.info("Done seed=%s: processed=%s found=%s transport_errors=%s remaining=%s",
                      seed, processed, len(found), transport_errors, len(queue))
        return found

    def _notify_found(self, result: LookupResult) -> None:
        if self.on_found is None:
            return
        try:
            self.on_found(result)
        except Exception as e:
            self.log.error("Found handler failed for %s: %s: %s", result.candidate, type(e).__name__, e)

    def _checkpoint(self, seed: str, queue: List[str]) -> None:
        try:
            self.store.store(seed, queue)
        except PersistenceError as e:
            self.log.error("Checkpoint failed for seed=%s remaining=%s: %s", seed, len(queue), e)
