"""Pass-through decoder.

Returns the encoded bytes unchanged.  Used by the prefetch CLI, which only
needs the persistent store warmed, and handy wherever a caller wants the
caching pipeline without real audio decoding.
"""

from __future__ import annotations

from soundcache.interfaces.decoder_provider import IAudioDecoder
from soundcache.utils.errors import DecodeError


class RawBytesDecoder(IAudioDecoder):
    """:class:`IAudioDecoder` that yields the payload itself."""

    async def decode(self, data: bytes) -> bytes:
        if not data:
            raise DecodeError("Empty payload", provider_name=self.get_provider_name())
        return bytes(data)

    def get_provider_name(self) -> str:
        return "raw"
