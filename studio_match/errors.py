"""Exception types raised by the synchronization layer."""

from __future__ import annotations


class StudioMatchError(Exception):
    """Base class for all errors raised by :mod:`studio_match`."""


class StoreError(StudioMatchError):
    """A request to the backing store failed.

    Attributes
    ----------
    code:
        Store specific error code (for example a PostgREST ``PGRST116``).
    status:
        HTTP status of the failed response, when there was one.

    """

    def __init__(
        self, message: str, code: str | None = None, status: int | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


class TeamValidationError(StudioMatchError):
    """Team input was rejected before anything was written."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TeamCreationError(StudioMatchError):
    """The team could not be created in the store."""
