"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

import pytest

from truetime.config import Settings
from truetime.services.sync_coordinator import SyncObserver


class FakeClock:
    """Device clock whose readings tests set by hand."""

    def __init__(self, monotonic_ms: int = 0, wall_clock_ms: int = 0):
        self.monotonic = monotonic_ms
        self.wall = wall_clock_ms

    def monotonic_ms(self) -> int:
        return self.monotonic

    def wall_clock_ms(self) -> int:
        return self.wall

    def advance(self, ms: int) -> None:
        self.monotonic += ms
        self.wall += ms


class FakeHandle:
    """Query handle that counts cancellations."""

    def __init__(self) -> None:
        self.cancel_calls = 0
        self.completed = False

    @property
    def cancelled(self) -> bool:
        return self.cancel_calls > 0

    def cancel(self) -> None:
        self.cancel_calls += 1


@dataclass
class PendingQuery:
    """A query the test resolves manually."""

    on_success: Callable[[int, int], None]
    on_failure: Callable[[str], None]
    handle: FakeHandle = field(default_factory=FakeHandle)

    def succeed(self, server_ms: int, monotonic_ms: int) -> None:
        self.handle.completed = True
        self.on_success(server_ms, monotonic_ms)

    def fail(self, reason: str) -> None:
        self.handle.completed = True
        self.on_failure(reason)


class FakeQuerySource:
    """TimeQuerySource that records queries instead of touching the network."""

    def __init__(self) -> None:
        self.queries: list[PendingQuery] = []
        self.error: Exception | None = None

    def query(self, on_success, on_failure) -> FakeHandle:
        if self.error is not None:
            raise self.error
        pending = PendingQuery(on_success=on_success, on_failure=on_failure)
        self.queries.append(pending)
        return pending.handle

    @property
    def active(self) -> list[PendingQuery]:
        return [
            q for q in self.queries
            if not q.handle.cancelled and not q.handle.completed
        ]


class RecordingObserver(SyncObserver):
    """Observer that keeps every notification."""

    def __init__(self) -> None:
        self.started: list[int] = []
        self.succeeded: list = []
        self.failed: list = []

    def on_sync_started(self, attempt_id: int) -> None:
        self.started.append(attempt_id)

    def on_sync_succeeded(self, estimate) -> None:
        self.succeeded.append(estimate)

    def on_sync_failed(self, reason) -> None:
        self.failed.append(reason)


@pytest.fixture
def fake_clock():
    return FakeClock(monotonic_ms=500_000, wall_clock_ms=1_700_000_000_000)


@pytest.fixture
def fake_source():
    return FakeQuerySource()


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def settings():
    return Settings(
        app_version="test",
        host="127.0.0.1",
        port=8000,
        log_file="",
        log_level="DEBUG",
        ntp_host="ntp.test",
        ntp_port=123,
        ntp_version=3,
        ntp_timeout_seconds=1.0,
        sync_on_startup=False,
        resync_interval_seconds=0.0,
        sync_api_key=None,
    )
