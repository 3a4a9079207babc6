"""Abstract base class for the audio decoding service.

The cache hands raw bytes to a decoder and keeps a reference to whatever it
returns.  Decoded buffers are treated as immutable; the cache never touches
their contents.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class IAudioDecoder(ABC):
    """Contract for turning encoded audio bytes into a decoded buffer."""

    @abstractmethod
    async def decode(self, data: bytes) -> Any:
        """Decode *data* and return an opaque decoded buffer.

        Implementations signal malformed input by raising any exception; the
        cache wraps it in :class:`~soundcache.utils.errors.DecodeError`.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier used in logs and error messages."""
