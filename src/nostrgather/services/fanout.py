"""Concurrent fan-out of one callback across every matching endpoint.

[FanoutExecutor.run_all()][nostrgather.services.fanout.FanoutExecutor.run_all]
starts one task per endpoint of the required capability class. Each task
connects, invokes the callback with the open connection and a shared stop
signal, and disconnects. All tasks share a single deadline.

Failure containment:

* A connect failure is logged (``endpoint_connect_failed``) and that
  endpoint is skipped.
* A failure inside the callback is logged (``endpoint_task_failed``) and
  sibling tasks carry on.
* Only "nothing matched" and "nothing connected" raise
  [NoUsableEndpointsError][nostrgather.core.exceptions.NoUsableEndpointsError].

Early satisfaction: a callback returning ``False`` (or any task setting the
stop signal) makes ``run_all`` return without waiting for the remaining
tasks. Those tasks are not aborted; they see the signal the next time they
check it and exit on their own. Callers that need them gone (live streams)
pass ``cancel_on_stop=True``. Reaching the deadline always cancels whatever
is still running.

See Also:
    [QueryAggregator][nostrgather.services.query.QueryAggregator]: Bounded
        queries built on this executor.
    [StreamAggregator][nostrgather.services.stream.StreamAggregator]:
        Subscriptions built on this executor.
"""

from __future__ import annotations

import asyncio
import ssl
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeAlias

from nostrgather.core.exceptions import (
    ConnectivityError,
    NoUsableEndpointsError,
    RelaySSLError,
    RelayTimeoutError,
)
from nostrgather.core.logger import Logger
from nostrgather.utils.transport import DEFAULT_TIMEOUT


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from nostrgather.models import Capability, RelayEndpoint
    from nostrgather.utils.transport import RelayConnection, RelayTransport

    from .directory import RelayDirectory


EndpointCallback: TypeAlias = (
    "Callable[[RelayEndpoint, RelayConnection, asyncio.Event], Awaitable[bool | None]]"
)
"""Per-endpoint work. Returning ``False`` signals early satisfaction."""


def to_connectivity_error(error: BaseException, url: str) -> ConnectivityError:
    """Translate a transport-level exception into the connectivity hierarchy."""
    if isinstance(error, ssl.SSLError):
        return RelaySSLError(f"TLS failure: {error}", url=url)
    if isinstance(error, TimeoutError):
        return RelayTimeoutError(f"timed out: {error}", url=url)
    return ConnectivityError(str(error) or type(error).__name__, url=url)


@dataclass(slots=True)
class FanoutReport:
    """Outcome of one [run_all()][nostrgather.services.fanout.FanoutExecutor.run_all] call.

    Empty-versus-unreachable is only visible here and in the logs: the
    records a callback gathered carry no trace of which endpoints failed.

    Attributes:
        attempted: URLs a task was started for.
        connected: URLs that connected successfully.
        failed: URLs that failed to connect.
        errored: URLs that connected but whose callback failed.
        satisfied: Whether the stop signal ended the wait early.
        timed_out: Whether the deadline ended the wait.
    """

    attempted: tuple[str, ...] = ()
    connected: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    errored: list[str] = field(default_factory=list)
    satisfied: bool = False
    timed_out: bool = False


class FanoutExecutor:
    """Runs endpoint callbacks concurrently under one deadline.

    Args:
        directory: Source of endpoints per capability requirement.
        transport: Connection factory.
        connect_timeout: Per-endpoint connect timeout in seconds.
    """

    def __init__(
        self,
        directory: RelayDirectory,
        transport: RelayTransport,
        *,
        connect_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._directory = directory
        self._transport = transport
        self._connect_timeout = connect_timeout
        self._background: set[asyncio.Task[None]] = set()
        self._logger = Logger("fanout")

    @property
    def directory(self) -> RelayDirectory:
        return self._directory

    async def run_all(
        self,
        required: Iterable[Capability],
        timeout: float | None,  # noqa: ASYNC109
        fn: EndpointCallback,
        *,
        fallback: Iterable[Capability] | None = None,
        cancel_on_stop: bool = False,
    ) -> FanoutReport:
        """Run *fn* against every endpoint carrying *required*.

        Args:
            required: Capability requirement of this call.
            timeout: Shared deadline in seconds (``None`` = no deadline).
            fn: Per-endpoint callback.
            fallback: Requirement used when no endpoint carries *required*.
            cancel_on_stop: Cancel remaining tasks on early satisfaction
                instead of leaving them to finish.

        Returns:
            A [FanoutReport][nostrgather.services.fanout.FanoutReport].

        Raises:
            NoUsableEndpointsError: If no endpoint matched, or none of the
                matching endpoints could be connected.
        """
        required = frozenset(required)
        endpoints = self._directory.endpoints_for(required)
        if not endpoints and fallback is not None:
            self._logger.debug("capability_fallback", required=sorted(required))
            required = frozenset(fallback)
            endpoints = self._directory.endpoints_for(required)
        if not endpoints:
            raise NoUsableEndpointsError(
                f"no endpoint carries {', '.join(sorted(required)) or 'any capability'}",
                required=required,
            )

        ordered = sorted(endpoints, key=lambda ep: ep.url)
        report = FanoutReport(attempted=tuple(ep.url for ep in ordered))
        stop = asyncio.Event()
        pending: set[asyncio.Future[object]] = set()
        for ep in ordered:
            task = asyncio.create_task(self._run_one(ep, fn, stop, report), name=f"fanout:{ep.url}")
            task.add_done_callback(self._log_unexpected)
            pending.add(task)
        stop_waiter = asyncio.ensure_future(stop.wait())

        try:
            async with asyncio.timeout(timeout):
                while pending and not stop.is_set():
                    _, pending = await asyncio.wait(
                        pending | {stop_waiter}, return_when=asyncio.FIRST_COMPLETED
                    )
                    pending.discard(stop_waiter)
        except TimeoutError:
            report.timed_out = True
        finally:
            stop_waiter.cancel()
            report.satisfied = stop.is_set()
            abandon = report.satisfied and not cancel_on_stop
            for task in pending:
                if not abandon:
                    task.cancel()
                self._background.add(task)
                task.add_done_callback(self._background.discard)

        self._logger.info(
            "fanout_completed",
            required=sorted(required),
            attempted=len(report.attempted),
            connected=len(report.connected),
            failed=len(report.failed),
            errored=len(report.errored),
            satisfied=report.satisfied,
            timed_out=report.timed_out,
        )

        if not report.connected:
            raise NoUsableEndpointsError(
                f"none of {len(report.attempted)} endpoint(s) could be reached",
                required=required,
                attempted=report.attempted,
            )
        return report

    async def _run_one(
        self,
        endpoint: RelayEndpoint,
        fn: EndpointCallback,
        stop: asyncio.Event,
        report: FanoutReport,
    ) -> None:
        try:
            connection = await self._transport.connect(endpoint.url, self._connect_timeout)
        except (OSError, TimeoutError, ssl.SSLError) as e:
            error = to_connectivity_error(e, endpoint.url)
            report.failed.append(endpoint.url)
            self._logger.warning(
                "endpoint_connect_failed",
                url=endpoint.url,
                error=str(error),
                error_type=type(error).__name__,
            )
            return

        report.connected.append(endpoint.url)
        try:
            if stop.is_set():
                return
            if await fn(endpoint, connection, stop) is False:
                stop.set()
        except (OSError, TimeoutError, ssl.SSLError, ConnectivityError) as e:
            report.errored.append(endpoint.url)
            self._logger.warning(
                "endpoint_task_failed",
                url=endpoint.url,
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            await connection.close()

    def _log_unexpected(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error(
                "worker_unexpected_exception",
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def drain(self) -> None:
        """Wait for abandoned tasks left running by earlier calls."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
