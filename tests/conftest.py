# tests/conftest.py
"""Shared fixtures: project root on sys.path, temp queue store, scripted lookups."""

import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from lookup import LookupResult, LookupStatus  # noqa: E402
from queue_store import QueueStore  # noqa: E402


@pytest.fixture
def tmp_store(tmp_path):
    return QueueStore(tmp_path / "storage.json")


class ScriptedLookup:
    """Async lookup double: candidates in `found` resolve, `failing` raise transport errors."""

    def __init__(self, found: Iterable[str] = (), failing: Iterable[str] = (), on_call=None):
        self.found = set(found)
        self.failing = set(failing)
        self.on_call = on_call
        self.calls: List[str] = []

    async def __call__(self, candidate: str) -> LookupResult:
        self.calls.append(candidate)
        if self.on_call is not None:
            self.on_call(candidate)
        if candidate in self.failing:
            return LookupResult(candidate, LookupStatus.TRANSPORT_ERROR, error="timeout", attempts=3)
        if candidate in self.found:
            payload: Optional[Dict] = {"data": {"id": candidate}, "success": True, "status": 200}
            return LookupResult(candidate, LookupStatus.FOUND, http_status=200, payload=payload)
        return LookupResult(candidate, LookupStatus.NOT_FOUND, http_status=404)


@pytest.fixture
def scripted_lookup():
    return ScriptedLookup
