"""
Error taxonomy for the ingestion pipeline.

Per-record errors (NormalizationError, PersistenceError) are caught at the
orchestrator's record boundary. Fetch-stage errors surface as SyncError.
"""

from __future__ import annotations

from typing import Any


# Status codes worth retrying on; everything else is treated as permanent
TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


class BidBaseError(Exception):
    """Base exception for all BidBase errors."""
    pass


class NormalizationError(BidBaseError):
    """A release is missing a field required to build a canonical tender."""

    def __init__(self, field: str, ocid: str | None = None):
        self.field = field
        self.ocid = ocid
        super().__init__(f"Missing required field: {field}")


class FeedUnavailableError(BidBaseError):
    """The OCDS feed could not be reached or answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        status_text: str | None = None,
        url: str | None = None,
        cause: Exception | None = None,
        retryable: bool | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.status_text = status_text
        self.url = url
        self.cause = cause
        self._retryable = retryable

    @property
    def transient(self) -> bool:
        """Whether retrying the same request could succeed."""
        if self._retryable is not None:
            return self._retryable
        if self.status_code is not None:
            return self.status_code in TRANSIENT_STATUS_CODES
        # Transport failures carry a cause and no status
        return self.cause is not None


class PersistenceError(BidBaseError):
    """Backend failure while reconciling a tender or its documents."""

    def __init__(
        self,
        message: str,
        *,
        ocid: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.ocid = ocid
        self.cause = cause


class SyncError(BidBaseError):
    """A sync run failed at the fetch stage.

    For multi-page runs, ``result`` holds the summary of pages that were
    processed before the failing fetch.
    """

    def __init__(self, message: str, cause: Exception | None = None, result: Any = None):
        super().__init__(message)
        self.cause = cause
        self.result = result
