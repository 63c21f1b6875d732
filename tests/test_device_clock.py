"""
Tests for the system device clock.
"""

from __future__ import annotations

import time

from truetime.services.device_clock import DeviceClock, SystemDeviceClock


class TestSystemDeviceClock:
    """Tests for SystemDeviceClock."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(SystemDeviceClock(), DeviceClock)

    def test_monotonic_never_decreases(self) -> None:
        clock = SystemDeviceClock()
        readings = [clock.monotonic_ms() for _ in range(100)]
        assert readings == sorted(readings)
        assert all(isinstance(value, int) for value in readings)

    def test_wall_clock_is_epoch_milliseconds(self) -> None:
        clock = SystemDeviceClock()
        before = int(time.time() * 1000)
        reading = clock.wall_clock_ms()
        after = int(time.time() * 1000)
        assert before - 1 <= reading <= after + 1
