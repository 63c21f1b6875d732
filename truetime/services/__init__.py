"""
Service layer modules for time queries, clocks and sync orchestration.
"""

__all__ = [
    "device_clock",
    "ntp_time",
    "offset_calculator",
    "resync_loop",
    "sync_coordinator",
]
