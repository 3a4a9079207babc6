"""Validation-state snapshot for one cached resource.

``CacheMetadata`` is the JSON side-record stored under ``<key>:meta`` next to
the body.  It is frozen: a revalidation produces a new instance via
``model_copy(update={...})`` and the whole record is rewritten, so readers
never observe a half-updated record.

The on-disk JSON uses camelCase keys (``lastModified``, ``cacheControl``) and
``timestamp`` in epoch milliseconds, so records written by other clients of
the same store stay readable.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class FreshnessDecision(str, Enum):  # noqa: UP042
    """What to do with a resource given its stored metadata.

    Evaluated in priority order by
    :func:`soundcache.services.freshness.evaluate_freshness`.
    """

    FETCH_UNCONDITIONAL = "fetch_unconditional"        # Nothing usable on record
    REVALIDATE_CONDITIONAL = "revalidate_conditional"  # Ask the origin with validators
    SERVE_FROM_STORE = "serve_from_store"              # Stored body is still fresh


class CacheMetadata(BaseModel):
    """Validators, freshness directives and confirmation time for a body."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    url: str
    etag: str | None = None
    last_modified: str | None = Field(default=None, alias="lastModified")
    cache_control: str | None = Field(default=None, alias="cacheControl")
    # Epoch milliseconds of the last full fetch or 304 confirmation.
    timestamp: int

    @property
    def has_validator(self) -> bool:
        return bool(self.etag or self.last_modified)

    def to_json_bytes(self) -> bytes:
        """Serialise with the camelCase wire keys, omitting unset validators."""
        return self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")

    @classmethod
    def from_json_bytes(cls, raw: bytes) -> CacheMetadata:
        """Parse a stored side-record.

        Raises ``pydantic.ValidationError`` for invalid JSON as well as for
        structurally wrong records.
        """
        return cls.model_validate_json(raw)
