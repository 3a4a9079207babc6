"""Network transport adapters."""

from soundcache.providers.transport.httpx_transport import HttpxTransport

__all__ = ["HttpxTransport"]
