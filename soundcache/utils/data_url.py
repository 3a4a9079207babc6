"""Inline ``data:`` URL handling.

Resource keys that carry their payload inline skip the persistent store and
the network entirely; the bytes are decoded straight away.

Format: ``data:[<mediatype>][;base64],<data>``.  Base64 payloads are
base64-decoded; anything else is percent-decoded.
"""

from __future__ import annotations

import base64
import binascii
from urllib.parse import unquote_to_bytes

from soundcache.utils.errors import DecodeError

_DATA_PREFIX = "data:"


def is_data_url(key: str) -> bool:
    """Return ``True`` when *key* encodes its payload inline."""
    return key[: len(_DATA_PREFIX)].lower() == _DATA_PREFIX


def parse_data_url(key: str) -> bytes:
    """Extract the raw payload bytes from a ``data:`` URL.

    Raises
    ------
    DecodeError
        If *key* has no comma separator or carries invalid base64.
    """
    if not is_data_url(key):
        raise DecodeError(f"Not a data URL: {key[:32]}")

    header, sep, payload = key[len(_DATA_PREFIX):].partition(",")
    if not sep:
        raise DecodeError("Malformed data URL: missing ',' separator")

    params = [p.strip().lower() for p in header.split(";")]
    if "base64" in params:
        try:
            # Whitespace is legal inside base64 data URLs; strict validation
            # rejects everything else.
            compact = "".join(unquote_to_bytes(payload).decode("ascii").split())
            return base64.b64decode(compact, validate=True)
        except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
            raise DecodeError(f"Malformed base64 payload in data URL: {exc}") from exc

    return unquote_to_bytes(payload)
