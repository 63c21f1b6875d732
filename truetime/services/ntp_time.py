"""
Single cancellable NTP query delivering an anchor pair or a failure reason.

Each blocking ntplib exchange runs in its own daemon thread; its outcome is
handed back to the event loop that started the query, so callbacks always run on the
loop thread.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import socket
import threading
from dataclasses import dataclass
from typing import Callable, Final, Protocol

import ntplib

from truetime.services.device_clock import DeviceClock, SystemDeviceClock

logger = logging.getLogger(__name__)

DEFAULT_NTP_HOST: Final[str] = "time.android.com"
DEFAULT_NTP_PORT: Final[int] = 123
DEFAULT_NTP_VERSION: Final[int] = 3
DEFAULT_TIMEOUT_SECONDS: Final[float] = 5.0

SuccessCallback = Callable[[int, int], None]
FailureCallback = Callable[[str], None]

_UNREACHABLE_ERRNOS = frozenset(
    {errno.ENETUNREACH, errno.EHOSTUNREACH, errno.ENETDOWN, errno.EHOSTDOWN}
)


class QueryHandle(Protocol):
    """Handle for one outstanding query."""

    def cancel(self) -> None:
        ...


class TimeQuerySource(Protocol):
    """
    Performs one exchange with a time authority.

    Exactly one of the callbacks fires, once, unless the returned handle is
    cancelled first. on_success receives (server_wall_time_at_receipt_ms,
    monotonic_at_receipt_ms); on_failure receives a short reason string.
    """

    def query(
        self,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> QueryHandle:
        ...


@dataclass(frozen=True)
class NtpSample:
    """Raw result of one NTP exchange."""

    server_wall_time_at_receipt_ms: int
    monotonic_at_receipt_ms: int
    round_trip_ms: int


def describe_failure(exc: BaseException) -> str:
    """Reduce an exchange error to the reason reported to observers."""
    if isinstance(exc, ntplib.NTPException):
        if "No response" in str(exc):
            return "timeout"
        return str(exc)
    if isinstance(exc, socket.gaierror):
        return f"host resolution failure: {exc.strerror or exc}"
    if isinstance(exc, TimeoutError):
        return "timeout"
    if isinstance(exc, OSError):
        if exc.errno in _UNREACHABLE_ERRNOS:
            return f"network unreachable: {exc.strerror or exc}"
        return f"I/O error: {exc.strerror or exc}"
    return str(exc) or exc.__class__.__name__


def _settle(
    future: asyncio.Future[NtpSample],
    result: NtpSample | None,
    error: Exception | None,
) -> None:
    # Runs on the loop thread; a cancelled query has already dropped the future.
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


class NtpQueryHandle:
    """Owns the task running one query; cancelling it drops the result."""

    def __init__(self, task: asyncio.Task[None]):
        self._task = task
        self._released = False

    @property
    def done(self) -> bool:
        return self._task.done()

    @property
    def released(self) -> bool:
        return self._released

    def cancel(self) -> None:
        """
        Stop the query from reporting and release its task.

        The worker thread cannot be interrupted; ntplib closes its socket
        within the configured timeout, the thread then exits and its result
        is never delivered. Each query has its own thread, so a released
        query never delays a newer one.
        """
        if self._released:
            return
        self._released = True
        if not self._task.done():
            self._task.cancel()
            logger.debug("Cancelled NTP query task %s", self._task.get_name())

    async def wait(self) -> None:
        """Wait until the query task has finished or been cancelled."""
        await asyncio.wait({self._task})


class NtpQuerySource:
    """TimeQuerySource backed by ntplib."""

    def __init__(
        self,
        host: str = DEFAULT_NTP_HOST,
        port: int = DEFAULT_NTP_PORT,
        version: int = DEFAULT_NTP_VERSION,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        clock: DeviceClock | None = None,
        client: ntplib.NTPClient | None = None,
    ):
        self._host = host
        self._port = port
        self._version = version
        self._timeout_seconds = timeout_seconds
        self._clock = clock or SystemDeviceClock()
        self._client = client or ntplib.NTPClient()
        self._query_count = 0

    @property
    def host(self) -> str:
        return self._host

    def query(
        self,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> NtpQueryHandle:
        """
        Start one exchange on the running event loop.

        Raises:
            RuntimeError: If called without a running event loop.
        """
        loop = asyncio.get_running_loop()
        self._query_count += 1
        task = loop.create_task(
            self._run(on_success, on_failure),
            name=f"ntp-query-{self._query_count}",
        )
        return NtpQueryHandle(task)

    async def _run(
        self,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> None:
        logger.debug("Querying NTP server %s:%s", self._host, self._port)
        loop = asyncio.get_running_loop()
        future: asyncio.Future[NtpSample] = loop.create_future()
        # One daemon thread per exchange, so a cancelled exchange still
        # waiting on its socket never holds up a newer one.
        worker = threading.Thread(
            target=self._exchange_in_thread,
            args=(loop, future),
            name=f"{asyncio.current_task().get_name()}-worker",
            daemon=True,
        )
        worker.start()

        try:
            sample = await future
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            reason = describe_failure(exc)
            logger.warning("NTP query to %s failed: %s", self._host, reason)
            self._deliver(on_failure, reason)
            return

        logger.debug(
            "NTP response from %s: server=%d ms monotonic=%d ms rtt=%d ms",
            self._host,
            sample.server_wall_time_at_receipt_ms,
            sample.monotonic_at_receipt_ms,
            sample.round_trip_ms,
        )
        self._deliver(
            on_success,
            sample.server_wall_time_at_receipt_ms,
            sample.monotonic_at_receipt_ms,
        )

    def _exchange_in_thread(
        self,
        loop: asyncio.AbstractEventLoop,
        future: asyncio.Future[NtpSample],
    ) -> None:
        result: NtpSample | None = None
        error: Exception | None = None
        try:
            result = self.exchange()
        except Exception as exc:
            error = exc
        try:
            loop.call_soon_threadsafe(_settle, future, result, error)
        except RuntimeError:
            logger.debug("Event loop closed before NTP result from %s", self._host)

    def _deliver(self, callback: Callable[..., None], *args: object) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception("NTP query callback %r failed", callback)

    def exchange(self) -> NtpSample:
        """Run the blocking NTP request and pair it with the monotonic clock."""
        response = self._client.request(
            self._host,
            version=self._version,
            port=self._port,
            timeout=self._timeout_seconds,
        )
        monotonic_ms = self._clock.monotonic_ms()
        # dest_time is the local receive time; adding the offset gives the
        # server's clock at that instant.
        server_ms = round((response.dest_time + response.offset) * 1000)
        return NtpSample(
            server_wall_time_at_receipt_ms=server_ms,
            monotonic_at_receipt_ms=monotonic_ms,
            round_trip_ms=round(response.delay * 1000),
        )


__all__ = [
    "DEFAULT_NTP_HOST",
    "NtpQueryHandle",
    "NtpQuerySource",
    "NtpSample",
    "QueryHandle",
    "TimeQuerySource",
    "describe_failure",
]
