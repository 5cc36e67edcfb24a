# exceptions raised by the store and the repository on top of it


class StoreError(Exception):
    """Base class for everything the data layer raises."""


class ValidationError(StoreError, ValueError):
    """A create/update input broke one of the record rules.

    The message names the first rule that failed, so it can be shown as-is
    next to the form field.
    """


class QuotaExceededError(StoreError):
    """The key-value medium refused a value larger than its per-key capacity."""

    def __init__(self, key: str, size: int, limit: int) -> None:
        super().__init__(
            f"Value for '{key}' is {size} bytes, capacity is {limit} bytes."
        )
        self.key = key
        self.size = size
        self.limit = limit


class StorageExhaustedError(StoreError):
    """A write still did not fit after the capacity policy shrank it."""


class ParseError(StoreError):
    """A stored value could not be decoded. Never leaves the repository."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Stored value for '{key}' is corrupt: {reason}")
        self.key = key
        self.reason = reason
