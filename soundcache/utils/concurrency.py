"""Cancellation primitives shared by the transport, fetch executor and
request coalescer.

Two pieces are exposed:

1. **AbortSignal** -- a one-shot, caller-owned cancellation flag backed by
   ``asyncio.Event``.  Callers that want a timeout arm it themselves (e.g.
   ``loop.call_later(5, signal.abort)``); the library has no internal timers.

2. **race** -- await something unless the signal fires first.  When the
   signal wins, the awaited task is cancelled and :class:`AbortError` is
   raised.  Wrap the awaitable in ``asyncio.shield`` when it is shared with
   other callers and must keep running for them.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from soundcache.utils.errors import AbortError

_T = TypeVar("_T")


class AbortSignal:
    """Caller-owned cancellation flag.

    Mirrors the shape of an ``AbortController`` signal: once aborted it stays
    aborted, and every waiter is released at once.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def abort(self, reason: str | None = None) -> None:
        """Fire the signal.  Repeated calls keep the first reason."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> None:
        """Block until the signal fires."""
        await self._event.wait()

    def raise_if_aborted(self) -> None:
        if self._event.is_set():
            raise AbortError(self._reason or "Operation was aborted")


async def race(awaitable: Awaitable[_T], signal: AbortSignal | None) -> _T:
    """Await *awaitable* unless *signal* fires first.

    Parameters
    ----------
    awaitable:
        The coroutine, task or future to wait on.
    signal:
        Optional abort signal.  ``None`` means "wait unconditionally".

    Returns
    -------
    _T
        Whatever *awaitable* resolves to.

    Raises
    ------
    AbortError
        If the signal was already aborted or fires before *awaitable*
        settles.  The task wrapping *awaitable* is cancelled in that case.
    """
    if signal is None:
        return await awaitable

    if signal.aborted:
        # Close the never-awaited coroutine so it doesn't warn on collection.
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        signal.raise_if_aborted()

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(signal.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    signal.raise_if_aborted()
    raise AbortError()  # pragma: no cover - waiter only completes on abort
