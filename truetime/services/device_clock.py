"""
Local clock readings used to anchor and sample true time.

The monotonic reading is an uptime counter that local clock changes cannot
move; it restarts from zero on reboot. The wall-clock reading is the
adjustable epoch time that the estimate is compared against.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class DeviceClock(Protocol):
    """Source of the two local clock readings, in milliseconds."""

    def monotonic_ms(self) -> int:
        ...

    def wall_clock_ms(self) -> int:
        ...


class SystemDeviceClock:
    """
    Clock backed by the operating system.

    Prefers CLOCK_BOOTTIME so time spent suspended still counts as uptime;
    falls back to time.monotonic_ns() on platforms without it.
    """

    def __init__(self) -> None:
        self._boottime_id: int | None = getattr(time, "CLOCK_BOOTTIME", None)

    def monotonic_ms(self) -> int:
        if self._boottime_id is not None:
            return time.clock_gettime_ns(self._boottime_id) // 1_000_000
        return time.monotonic_ns() // 1_000_000

    def wall_clock_ms(self) -> int:
        return time.time_ns() // 1_000_000


__all__ = ["DeviceClock", "SystemDeviceClock"]
