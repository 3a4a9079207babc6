"""Decoder adapters."""

from soundcache.providers.decoder.raw_decoder import RawBytesDecoder

__all__ = ["RawBytesDecoder"]
