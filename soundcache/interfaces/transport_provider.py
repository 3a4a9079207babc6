"""Abstract base class for the network transport.

The transport performs a single GET and hands back the status line, headers
and a lazily-consumed body stream.  Validator headers (``If-None-Match``,
``If-Modified-Since``) are injected by the caller; the transport only has to
pass them through and honour the abort signal.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from dataclasses import dataclass, field

from soundcache.utils.concurrency import AbortSignal


async def _empty_stream() -> AsyncIterator[bytes]:
    return
    yield b""  # pragma: no cover


@dataclass
class TransportResponse:
    """Status, headers and body stream of one network response.

    Header names are normalised to lower case on construction so lookups via
    :meth:`get_header` are case-insensitive.
    """

    status: int
    status_text: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    stream: AsyncIterator[bytes] | None = None
    close: Callable[[], Awaitable[None]] | None = None

    def __post_init__(self) -> None:
        self.headers = {k.lower(): v for k, v in self.headers.items()}
        self._closed = False

    def get_header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    def iter_bytes(self) -> AsyncIterator[bytes]:
        """Return the body stream (empty for bodiless responses)."""
        return self.stream if self.stream is not None else _empty_stream()

    async def aclose(self) -> None:
        """Release the underlying connection.  Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        if self.close is not None:
            await self.close()


class INetworkTransport(ABC):
    """Contract for issuing GET requests against resource URLs."""

    @abstractmethod
    async def request(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        signal: AbortSignal | None = None,
    ) -> TransportResponse:
        """Issue a GET for *url*.

        Parameters
        ----------
        url:
            The resource URL.
        headers:
            Extra request headers (validators).
        signal:
            Optional abort signal; the transport raises
            :class:`~soundcache.utils.errors.AbortError` if it fires before
            the response headers arrive.

        Raises
        ------
        NetworkError
            With ``status=0`` when no response could be obtained.
        """

    @abstractmethod
    async def aclose(self) -> None:
        """Release pooled connections."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier used in logs and error messages."""
