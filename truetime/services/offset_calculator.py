"""
Anchor arithmetic for true time and drift.

An anchor pairs the server's wall-clock time with the local monotonic reading
taken at the moment the response arrived. Their difference is the true time
at which the monotonic clock read zero (boot), so adding any later monotonic
reading gives the current true time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class Anchor:
    """Server time and monotonic time captured from one successful query."""

    server_wall_time_at_receipt_ms: int
    monotonic_at_receipt_ms: int

    @property
    def boot_relative_true_time_ms(self) -> int:
        """True epoch time at which the monotonic clock read zero."""
        return self.server_wall_time_at_receipt_ms - self.monotonic_at_receipt_ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "server_wall_time_at_receipt_ms": self.server_wall_time_at_receipt_ms,
            "monotonic_at_receipt_ms": self.monotonic_at_receipt_ms,
            "boot_relative_true_time_ms": self.boot_relative_true_time_ms,
        }


@dataclass(frozen=True)
class TrueTimeEstimate:
    """
    True time and drift at one instant.

    drift_ms is estimated true time minus local wall-clock time: positive
    means the local clock lags, negative means it runs ahead.
    """

    estimated_true_time_ms: int
    drift_ms: int
    local_wall_clock_ms: int
    monotonic_ms: int

    @property
    def local_clock_lags(self) -> bool:
        return self.drift_ms > 0

    @property
    def local_clock_ahead(self) -> bool:
        return self.drift_ms < 0

    @property
    def estimated_true_time(self) -> datetime:
        return _ms_to_datetime(self.estimated_true_time_ms)

    @property
    def local_wall_clock(self) -> datetime:
        return _ms_to_datetime(self.local_wall_clock_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "estimated_true_time_ms": self.estimated_true_time_ms,
            "estimated_true_time_iso": self.estimated_true_time.isoformat(),
            "local_wall_clock_ms": self.local_wall_clock_ms,
            "local_wall_clock_iso": self.local_wall_clock.isoformat(),
            "drift_ms": self.drift_ms,
            "monotonic_ms": self.monotonic_ms,
        }


def _ms_to_datetime(epoch_ms: int) -> datetime:
    seconds, millis = divmod(epoch_ms, 1000)
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(
        microsecond=millis * 1000
    )


def compute_estimate(
    anchor: Anchor,
    now_monotonic_ms: int,
    now_wall_clock_ms: int,
) -> TrueTimeEstimate:
    """Return the true-time estimate for the given local clock readings."""
    estimated = anchor.boot_relative_true_time_ms + now_monotonic_ms
    return TrueTimeEstimate(
        estimated_true_time_ms=estimated,
        drift_ms=estimated - now_wall_clock_ms,
        local_wall_clock_ms=now_wall_clock_ms,
        monotonic_ms=now_monotonic_ms,
    )


__all__ = ["Anchor", "TrueTimeEstimate", "compute_estimate"]
