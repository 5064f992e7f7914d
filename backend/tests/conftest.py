"""
Test Configuration — stub inFlow client, controllable clock, detector factory.

The stub client serves queued pages (or raises queued errors) and records
every fetch, so tests can assert on paths and query parameters without
touching the network.
"""

from datetime import datetime, timedelta, timezone

import pytest

from polling.detector import ChangeDetector
from polling.store import InMemoryCheckpointStore

T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


class StubInFlowClient:
    """Serves queued responses from ``fetch_page``; repeats the last one when drained."""

    def __init__(self):
        self.responses: list = []
        self.calls: list[tuple[str, dict]] = []
        self._last = []

    def queue(self, *responses) -> "StubInFlowClient":
        self.responses.extend(responses)
        return self

    async def fetch_page(self, collection_path: str, query: dict) -> list:
        self.calls.append((collection_path, dict(query)))
        response = self.responses.pop(0) if self.responses else self._last
        self._last = response
        if isinstance(response, BaseException):
            raise response
        count = query.get("count")
        if isinstance(response, list) and count:
            return response[:count]
        return response


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int = 5) -> datetime:
        self.now = self.now + timedelta(minutes=minutes)
        return self.now


@pytest.fixture
def stub_client():
    return StubInFlowClient()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryCheckpointStore()


@pytest.fixture
def detector(stub_client, store, clock):
    return ChangeDetector(stub_client, store, clock=clock)
