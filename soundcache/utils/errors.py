"""Custom exception hierarchy for soundcache.

All library exceptions inherit from :class:`SoundCacheError`, which carries
an optional ``provider_name`` so error handlers can identify which external
collaborator (e.g. "httpx", "sqlite", "raw") caused the failure.

The hierarchy follows the terminal states of a resource load:

    SoundCacheError  (base -- catch-all for any soundcache error)
    +-- NetworkError        (non-200/304 response or transport failure)
    +-- AbortError          (the caller's own signal fired)
    +-- DecodeError         (the decoding service rejected the payload)
    +-- StoreError          (persistent store unavailable / quota / unsupported)
    +-- ConsistencyError    (304 with no stored body, recovery fetch failed)
    +-- ConfigurationError  (invalid runtime configuration)

``StoreError`` is never terminal for a load: writes roll back and reads
degrade to a cache miss.  The others surface to every caller joined on the
same coalesced operation, except ``AbortError`` which only reaches the
caller whose signal fired.
"""

from __future__ import annotations


class SoundCacheError(Exception):
    """Base exception for all soundcache errors.

    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[httpx] HTTP 500 Internal Server Error``.
    """

    # Value reported as ``errorType`` in loading-error notifications.
    error_type: str = "unknown"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Network errors
# ---------------------------------------------------------------------------

class NetworkError(SoundCacheError):
    """Raised for any response status other than 200 or 304.

    ``status`` is ``0`` when the transport failed before a response arrived
    (DNS failure, connection refused, timeout).
    """

    error_type = "network"

    def __init__(
        self,
        status: int,
        status_text: str = "",
        message: str | None = None,
        provider_name: str | None = None,
    ) -> None:
        self._status = status
        self._status_text = status_text
        if message is None:
            message = f"HTTP {status} {status_text}".rstrip()
        super().__init__(message=message, provider_name=provider_name)

    @property
    def status(self) -> int:
        return self._status

    @property
    def status_text(self) -> str:
        return self._status_text


class ConsistencyError(SoundCacheError):
    """Raised when a 304 arrived with no stored body and the unconditional
    recovery fetch also failed."""

    error_type = "consistency"

    def __init__(
        self,
        status: int,
        status_text: str = "",
        provider_name: str | None = None,
    ) -> None:
        self._status = status
        self._status_text = status_text
        message = (
            "Failed to fetch resource after cache inconsistency: "
            f"{status} {status_text}".rstrip()
        )
        super().__init__(message=message, provider_name=provider_name)

    @property
    def status(self) -> int:
        return self._status

    @property
    def status_text(self) -> str:
        return self._status_text


# ---------------------------------------------------------------------------
# Caller / payload errors
# ---------------------------------------------------------------------------

class AbortError(SoundCacheError):
    """Raised when the caller's abort signal fires before the load settles."""

    error_type = "abort"

    def __init__(
        self,
        message: str = "Operation was aborted",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DecodeError(SoundCacheError):
    """Raised when the decoding service rejects a payload as malformed."""

    error_type = "decode"

    def __init__(
        self,
        message: str = "Failed to decode audio data",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Storage / configuration errors
# ---------------------------------------------------------------------------

class StoreError(SoundCacheError):
    """Raised by store adapters when the persistent store is unavailable,
    over quota, or unsupported in the current environment."""

    error_type = "store"

    def __init__(
        self,
        message: str = "Persistent store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(SoundCacheError):
    """Raised when runtime configuration is invalid."""

    error_type = "configuration"

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


def classify_error(error: BaseException) -> str:
    """Return the ``errorType`` label used in loading-error notifications."""
    if isinstance(error, SoundCacheError):
        return error.error_type
    return "unknown"
