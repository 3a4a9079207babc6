"""Per-key request coalescing.

At most one load runs per resource key.  The first caller for a key starts
the work as an asyncio task; every caller that arrives while it is pending
joins the same task and observes the identical outcome (the same buffer
instance, or the same exception).

Cancellation is per caller.  A caller whose own signal fires is detached:
it gets :class:`AbortError` and its callbacks stop receiving events, while
the shared task keeps running for everyone else.  Only when the last
participant leaves is the shared task's internal signal fired, which stops
the network stage; store writes that already started are left to finish or
roll back.

The entry is removed from the pending table when the task settles, on every
exit path, by a ``finally`` tied to the task itself.  An abandoned task keeps
its entry until it settles: a caller arriving meanwhile joins it and takes
its result, and starts a fresh load only if the task ended in
:class:`AbortError`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from soundcache.models.events import LoadingCallbacks
from soundcache.services.notifier import EventDispatcher
from soundcache.utils.concurrency import AbortSignal, race
from soundcache.utils.errors import AbortError

logger = structlog.get_logger(logger_name=__name__)


@dataclass(eq=False)
class PendingOperation:
    """One in-flight load for a resource key.

    ``registrations`` is the live list of callbacks from every joined caller;
    ``signal`` is the operation's own abort signal, fired only when no caller
    remains interested.
    """

    key: str
    registrations: list[LoadingCallbacks] = field(default_factory=list)
    signal: AbortSignal = field(default_factory=AbortSignal)
    participants: int = 0
    task: asyncio.Task[Any] | None = None
    events: EventDispatcher = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.events = EventDispatcher(self.registrations)

    def attach(self, callbacks: LoadingCallbacks | None) -> None:
        self.participants += 1
        if callbacks is not None:
            self.registrations.append(callbacks)

    def detach(self, callbacks: LoadingCallbacks | None) -> None:
        self.participants -= 1
        if callbacks is not None:
            for index, registered in enumerate(self.registrations):
                if registered is callbacks:
                    del self.registrations[index]
                    break


WorkFn = Callable[[PendingOperation], Awaitable[Any]]


class RequestCoalescer:
    """Table of pending operations keyed by resource key."""

    def __init__(self) -> None:
        self._pending: dict[str, PendingOperation] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    async def run_or_join(
        self,
        key: str,
        work_fn: WorkFn,
        signal: AbortSignal | None = None,
        callbacks: LoadingCallbacks | None = None,
    ) -> Any:
        """Run *work_fn* for *key*, or join the run already in flight.

        Parameters
        ----------
        key:
            Resource key.
        work_fn:
            Coroutine function receiving the :class:`PendingOperation`; it
            should emit events through ``operation.events`` and honour
            ``operation.signal``.
        signal:
            This caller's abort signal.
        callbacks:
            This caller's observability hooks.

        Raises
        ------
        AbortError
            If *signal* fires before the operation settles.
        """
        if signal is not None:
            signal.raise_if_aborted()

        while True:
            operation = self._pending.get(key)
            if operation is None:
                operation = self._start(key, work_fn)
            elif operation.signal.aborted:
                logger.debug("request_joined_abandoned", key=key)
            else:
                logger.debug("request_joined", key=key, participants=operation.participants + 1)

            try:
                return await self._wait(operation, signal, callbacks)
            except AbortError:
                own_abort = signal is not None and signal.aborted
                if own_abort or not operation.signal.aborted:
                    raise
                # An abandoned load stopped before producing a result.
                self._forget(operation)
                logger.debug("request_restarted", key=key)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _wait(
        self,
        operation: PendingOperation,
        signal: AbortSignal | None,
        callbacks: LoadingCallbacks | None,
    ) -> Any:
        operation.attach(callbacks)
        settled = False
        try:
            result = await race(asyncio.shield(operation.task), signal)
            settled = True
            return result
        except AbortError:
            # Only this caller's own signal counts as leaving early.
            settled = signal is None or not signal.aborted
            raise
        except Exception:
            settled = True
            raise
        finally:
            operation.detach(callbacks)
            if not settled:
                self._on_caller_left(operation)

    def _start(self, key: str, work_fn: WorkFn) -> PendingOperation:
        operation = PendingOperation(key=key)
        operation.task = asyncio.create_task(self._drive(operation, work_fn))
        operation.task.add_done_callback(_consume_outcome)
        self._pending[key] = operation
        logger.debug("request_started", key=key)
        return operation

    async def _drive(self, operation: PendingOperation, work_fn: WorkFn) -> Any:
        try:
            return await work_fn(operation)
        finally:
            self._forget(operation)

    def _forget(self, operation: PendingOperation) -> None:
        if self._pending.get(operation.key) is operation:
            del self._pending[operation.key]

    def _on_caller_left(self, operation: PendingOperation) -> None:
        """A caller detached before settlement (own signal or task cancel)."""
        logger.debug(
            "request_detached",
            key=operation.key,
            remaining=operation.participants,
        )
        if operation.participants > 0 or operation.task is None or operation.task.done():
            return
        # Nobody is waiting any more: stop the network stage.  The entry stays
        # until the task settles so a later caller never runs a second flight.
        operation.signal.abort("All callers detached")
        logger.debug("request_abandoned", key=operation.key)


def _consume_outcome(task: asyncio.Task[Any]) -> None:
    """Mark the task's exception as retrieved when nobody awaited it."""
    if not task.cancelled():
        task.exception()
