"""httpx-backed network transport.

Sends streaming GET requests through a shared ``httpx.AsyncClient`` and
exposes the body as an async byte iterator so the fetch executor can report
progress chunk by chunk.  Transport-level failures are translated into
:class:`NetworkError` with ``status=0``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping

import httpx
import structlog

from soundcache.interfaces.transport_provider import INetworkTransport, TransportResponse
from soundcache.utils.concurrency import AbortSignal, race
from soundcache.utils.errors import NetworkError

logger = structlog.get_logger(logger_name=__name__)

_PROVIDER_NAME = "httpx"
_DEFAULT_TIMEOUT = 30.0
_DEFAULT_USER_AGENT = "soundcache/0.1 (+https://pypi.org/project/soundcache/)"


class HttpxTransport(INetworkTransport):
    """:class:`INetworkTransport` over ``httpx.AsyncClient``.

    Parameters
    ----------
    http_client:
        Optional pre-configured client.  When omitted the transport creates
        (and later closes) its own.
    timeout:
        Per-request timeout in seconds for a self-created client.
    user_agent:
        ``User-Agent`` header for a self-created client.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
        user_agent: str = _DEFAULT_USER_AGENT,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": user_agent},
            follow_redirects=True,
        )

    async def request(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        signal: AbortSignal | None = None,
    ) -> TransportResponse:
        request = self._client.build_request("GET", url, headers=dict(headers or {}))
        try:
            response = await race(self._client.send(request, stream=True), signal)
        except httpx.HTTPError as exc:
            logger.warning("transport_error", url=url, error=str(exc))
            raise NetworkError(
                status=0,
                status_text=type(exc).__name__,
                message=f"Request to {url} failed: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        return TransportResponse(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers),
            stream=self._iter_body(url, response),
            close=response.aclose,
        )

    async def _iter_body(self, url: str, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as exc:
            raise NetworkError(
                status=response.status_code,
                status_text=response.reason_phrase,
                message=f"Body stream for {url} failed: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        finally:
            await response.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME
