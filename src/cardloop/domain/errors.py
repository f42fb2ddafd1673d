"""
Error taxonomy for cardloop.

InvalidArgument is a caller bug and is never retried. StorageFailure wraps
any persisted-store rejection. NotFound marks a record that disappeared
between queue build and fetch.
"""


class CardloopError(Exception):
    """Base class for all cardloop errors."""


class InvalidArgument(CardloopError, ValueError):
    """Unsupported grade, missing card identifier or an out-of-order session action."""


class StorageFailure(CardloopError):
    """A persisted-store operation was rejected."""


class NotFound(CardloopError, LookupError):
    """A record referenced by the session no longer exists in storage."""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} '{key}' was not found.")
        self.kind = kind
        self.key = key
