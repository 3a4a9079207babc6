"""Freshness evaluation for stored resources.

Pure decision logic: given the metadata on record (or none), decide whether
the stored body can be served as-is, must be revalidated with a conditional
request, or must be fetched from scratch.  Rules, in priority order:

    1. no metadata                                   -> FETCH_UNCONDITIONAL
    2. no-cache / no-store / must-revalidate         -> REVALIDATE_CONDITIONAL
                                                        (FETCH_UNCONDITIONAL
                                                        without a validator)
    3. positive max-age and age < max-age            -> SERVE_FROM_STORE
    4. a validator (ETag / Last-Modified) on record  -> REVALIDATE_CONDITIONAL
    5. TTL fallback: age > expiration                -> FETCH_UNCONDITIONAL
                     otherwise                       -> SERVE_FROM_STORE

Validators always win over the TTL: a resource with an ETag is revalidated
once its max-age (if any) has lapsed, even when the TTL would still consider
it fresh.  Conditional requests are cheap because a 304 carries no body.
"""

from __future__ import annotations

import re

from soundcache.models.metadata import CacheMetadata, FreshnessDecision

_REVALIDATE_DIRECTIVES = frozenset({"no-cache", "no-store", "must-revalidate"})
_DIGITS = re.compile(r"[0-9]+")


def _directives(cache_control: str) -> list[tuple[str, str]]:
    """Split a Cache-Control value into ``(name, raw_value)`` pairs."""
    pairs: list[tuple[str, str]] = []
    for part in cache_control.split(","):
        name, _, value = part.partition("=")
        name = name.strip().lower()
        if name:
            pairs.append((name, value))
    return pairs


def parse_max_age(cache_control: str | None) -> int | None:
    """Return the ``max-age`` value in seconds, or ``None``.

    Tolerates whitespace around ``=`` and an optionally quoted value
    (``max-age = "3600"``).  A malformed value is reported as ``None``; this
    function never raises.
    """
    if not cache_control:
        return None
    for name, value in _directives(cache_control):
        if name != "max-age":
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1].strip()
        if _DIGITS.fullmatch(value):
            return int(value)
        return None
    return None


def requires_revalidation(cache_control: str | None) -> bool:
    """Return ``True`` if a directive forces revalidation regardless of age."""
    if not cache_control:
        return False
    return any(name in _REVALIDATE_DIRECTIVES for name, _ in _directives(cache_control))


def evaluate_freshness(
    metadata: CacheMetadata | None,
    *,
    now_ms: int,
    expiration_seconds: float,
) -> FreshnessDecision:
    """Decide how to satisfy a request from the metadata on record.

    Parameters
    ----------
    metadata:
        The stored side-record, or ``None`` when nothing is cached.
    now_ms:
        Current time in epoch milliseconds.
    expiration_seconds:
        TTL fallback, used only when no validator is available.
    """
    if metadata is None:
        return FreshnessDecision.FETCH_UNCONDITIONAL

    if requires_revalidation(metadata.cache_control):
        if metadata.has_validator:
            return FreshnessDecision.REVALIDATE_CONDITIONAL
        return FreshnessDecision.FETCH_UNCONDITIONAL

    age_ms = now_ms - metadata.timestamp

    max_age = parse_max_age(metadata.cache_control)
    if max_age is not None and max_age > 0 and age_ms < max_age * 1000:
        return FreshnessDecision.SERVE_FROM_STORE
    # max-age=0 or stale: fall through to validators

    if metadata.has_validator:
        return FreshnessDecision.REVALIDATE_CONDITIONAL

    if age_ms > expiration_seconds * 1000:
        return FreshnessDecision.FETCH_UNCONDITIONAL
    return FreshnessDecision.SERVE_FROM_STORE
