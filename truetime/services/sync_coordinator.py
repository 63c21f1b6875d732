"""
Sync orchestration: one in-flight time query, the current anchor, and
observer notification.

The coordinator is owned by a single event loop thread. Every state change
happens there; query sources are expected to deliver their callbacks on the
same thread.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any

from truetime.services.device_clock import DeviceClock, SystemDeviceClock
from truetime.services.ntp_time import QueryHandle, TimeQuerySource
from truetime.services.offset_calculator import (
    Anchor,
    TrueTimeEstimate,
    compute_estimate,
)

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    """Lifecycle state of the current sync attempt."""

    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FailureKind(str, Enum):
    """Why a sync attempt failed."""

    QUERY_SOURCE_UNAVAILABLE = "query_source_unavailable"
    NETWORK_FAILURE = "network_failure"


@dataclass(frozen=True)
class SyncFailure:
    """Failure reason handed to observers."""

    kind: FailureKind
    message: str

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message}


@dataclass
class SyncAttempt:
    """One outstanding or completed query."""

    attempt_id: int
    state: SyncState = SyncState.IN_FLIGHT
    anchor: Anchor | None = None
    failure: SyncFailure | None = None
    handle: QueryHandle | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "state": self.state.value,
            "anchor": self.anchor.to_dict() if self.anchor else None,
            "failure": self.failure.to_dict() if self.failure else None,
        }


class SyncObserver:
    """Receives sync outcomes. Override the callbacks you need."""

    def on_sync_started(self, attempt_id: int) -> None:
        pass

    def on_sync_succeeded(self, estimate: TrueTimeEstimate) -> None:
        pass

    def on_sync_failed(self, reason: SyncFailure) -> None:
        pass


class LoggingSyncObserver(SyncObserver):
    """Logs each sync outcome."""

    def __init__(self, host_label: str = "time server"):
        self._host_label = host_label

    def on_sync_started(self, attempt_id: int) -> None:
        logger.info(
            "Sync attempt #%d: connecting to %s", attempt_id, self._host_label
        )

    def on_sync_succeeded(self, estimate: TrueTimeEstimate) -> None:
        logger.info("Synchronized with %s", self._host_label)
        logger.info("Local: %s", estimate.local_wall_clock.isoformat())
        logger.info("True:  %s", estimate.estimated_true_time.isoformat())
        if estimate.local_clock_lags:
            logger.info("Drift: %+dms (local clock lags)", estimate.drift_ms)
        elif estimate.local_clock_ahead:
            logger.info("Drift: %+dms (local clock ahead)", estimate.drift_ms)
        else:
            logger.info("Drift: 0ms (clocks match)")

    def on_sync_failed(self, reason: SyncFailure) -> None:
        logger.warning(
            "Sync with %s failed (%s): %s",
            self._host_label,
            reason.kind.value,
            reason.message,
        )


class SyncCoordinator:
    """
    Runs time queries and turns their results into true-time estimates.

    At most one query is in flight. Starting a new sync cancels the previous
    query, and only the most recent attempt may change the stored anchor.
    A failed attempt leaves any earlier anchor in place.
    """

    def __init__(
        self,
        source: TimeQuerySource,
        clock: DeviceClock | None = None,
        observers: list[SyncObserver] | None = None,
    ):
        """
        Initialize the coordinator.

        Args:
            source: Query source used for each sync attempt.
            clock: Local clock readings. Uses the system clock if not provided.
            observers: Observers registered up front.
        """
        self._source = source
        self._clock = clock or SystemDeviceClock()
        self._observers: list[SyncObserver] = list(observers or [])
        self._anchor: Anchor | None = None
        self._attempt: SyncAttempt | None = None
        self._last_completed: SyncAttempt | None = None
        self._next_attempt_id = 1

    @property
    def state(self) -> SyncState:
        if self._attempt is None:
            return SyncState.IDLE
        return self._attempt.state

    @property
    def anchor(self) -> Anchor | None:
        return self._anchor

    @property
    def current_attempt(self) -> SyncAttempt | None:
        return self._attempt

    @property
    def is_syncing(self) -> bool:
        return self.state is SyncState.IN_FLIGHT

    def register_observer(self, observer: SyncObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def unregister_observer(self, observer: SyncObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def start_sync(self) -> int:
        """
        Start a new sync attempt, cancelling any query still in flight.

        The outcome is reported to observers later. Returns the attempt id.
        """
        if self._release_in_flight("superseded"):
            logger.info("Restarting sync; previous query cancelled")

        attempt = SyncAttempt(attempt_id=self._next_attempt_id)
        self._next_attempt_id += 1
        self._attempt = attempt
        self._notify("on_sync_started", attempt.attempt_id)
        if self._attempt is not attempt:
            logger.debug(
                "Attempt #%d replaced by an observer before querying",
                attempt.attempt_id,
            )
            return attempt.attempt_id

        try:
            handle = self._source.query(
                partial(self._handle_success, attempt.attempt_id),
                partial(self._handle_failure, attempt.attempt_id),
            )
        except Exception as exc:
            logger.error("Unable to start time query: %s", exc, exc_info=True)
            if self._attempt is attempt and attempt.state is SyncState.IN_FLIGHT:
                self._fail(
                    attempt,
                    SyncFailure(
                        kind=FailureKind.QUERY_SOURCE_UNAVAILABLE,
                        message=str(exc) or exc.__class__.__name__,
                    ),
                )
            return attempt.attempt_id

        # The source may already have reported synchronously.
        if attempt.state is not SyncState.IN_FLIGHT:
            return attempt.attempt_id
        if self._attempt is not attempt:
            # Detached while query() ran; nothing else will release it.
            self._cancel_handle(handle, attempt.attempt_id, "detached")
            return attempt.attempt_id
        attempt.handle = handle
        return attempt.attempt_id

    def sample_current_estimate(self) -> TrueTimeEstimate | None:
        """
        Return a freshly computed estimate, or None if no sync has succeeded.
        """
        anchor = self._anchor
        if anchor is None:
            return None
        return compute_estimate(
            anchor,
            self._clock.monotonic_ms(),
            self._clock.wall_clock_ms(),
        )

    def shutdown(self) -> None:
        """Cancel any in-flight query and release it. Safe to call repeatedly."""
        if self._release_in_flight("shutdown"):
            self._attempt = self._last_completed
            logger.info("Sync coordinator shut down; in-flight query released")
        else:
            logger.debug("Sync coordinator shut down; nothing in flight")

    def get_status(self) -> dict[str, Any]:
        """
        Get the current status of the coordinator.

        Returns:
            Dict with status information
        """
        return {
            "state": self.state.value,
            "syncing": self.is_syncing,
            "current_attempt": self._attempt.to_dict() if self._attempt else None,
            "anchor": self._anchor.to_dict() if self._anchor else None,
        }

    def _release_in_flight(self, why: str) -> bool:
        attempt = self._attempt
        if attempt is None or attempt.state is not SyncState.IN_FLIGHT:
            return False

        handle, attempt.handle = attempt.handle, None
        # Detach first so a callback fired during cancel() is treated as stale.
        self._attempt = None
        if handle is not None:
            self._cancel_handle(handle, attempt.attempt_id, why)
        logger.debug("Released attempt #%d (%s)", attempt.attempt_id, why)
        return True

    def _cancel_handle(self, handle: QueryHandle, attempt_id: int, why: str) -> None:
        try:
            handle.cancel()
        except Exception:
            logger.exception(
                "Error releasing query for attempt #%d (%s)",
                attempt_id,
                why,
            )

    def _current_in_flight(self, attempt_id: int) -> SyncAttempt | None:
        attempt = self._attempt
        if (
            attempt is None
            or attempt.attempt_id != attempt_id
            or attempt.state is not SyncState.IN_FLIGHT
        ):
            logger.debug("Discarding stale result for attempt #%d", attempt_id)
            return None
        return attempt

    def _handle_success(
        self,
        attempt_id: int,
        server_wall_time_at_receipt_ms: int,
        monotonic_at_receipt_ms: int,
    ) -> None:
        attempt = self._current_in_flight(attempt_id)
        if attempt is None:
            return

        anchor = Anchor(
            server_wall_time_at_receipt_ms=int(server_wall_time_at_receipt_ms),
            monotonic_at_receipt_ms=int(monotonic_at_receipt_ms),
        )
        self._anchor = anchor
        attempt.anchor = anchor
        attempt.state = SyncState.SUCCEEDED
        attempt.handle = None
        self._last_completed = attempt
        logger.debug(
            "Attempt #%d anchored: boot-relative true time %d ms",
            attempt_id,
            anchor.boot_relative_true_time_ms,
        )

        estimate = compute_estimate(
            anchor,
            self._clock.monotonic_ms(),
            self._clock.wall_clock_ms(),
        )
        self._notify("on_sync_succeeded", estimate)

    def _handle_failure(self, attempt_id: int, reason: str) -> None:
        attempt = self._current_in_flight(attempt_id)
        if attempt is None:
            return
        self._fail(
            attempt,
            SyncFailure(kind=FailureKind.NETWORK_FAILURE, message=str(reason)),
        )

    def _fail(self, attempt: SyncAttempt, failure: SyncFailure) -> None:
        attempt.state = SyncState.FAILED
        attempt.failure = failure
        attempt.handle = None
        self._last_completed = attempt
        self._notify("on_sync_failed", failure)

    def _notify(self, method: str, payload: Any) -> None:
        for observer in list(self._observers):
            try:
                getattr(observer, method)(payload)
            except Exception as e:
                logger.error(
                    "Observer %r failed in %s: %s",
                    observer,
                    method,
                    e,
                    exc_info=True,
                )


__all__ = [
    "FailureKind",
    "LoggingSyncObserver",
    "SyncAttempt",
    "SyncCoordinator",
    "SyncFailure",
    "SyncObserver",
    "SyncState",
]
