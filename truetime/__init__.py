"""
True-time estimation anchored to the host's monotonic clock.
"""

__all__ = [
    "config",
    "http_app",
    "logging_config",
    "services",
    "sync_api",
]
