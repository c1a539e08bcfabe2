"""
Error taxonomy for the SMS code pipeline.

The HTTP layer maps each class to a status code; see main.py.
"""


class SmsRelayError(Exception):
    """Base class for all pipeline errors."""


class NoCodeFound(SmsRelayError):
    """The message text contains no extractable verification code."""


class InvalidRecord(SmsRelayError):
    """The sender or receipt time cannot form a record; nothing was written."""


class SerializationFailed(SmsRelayError):
    """The record could not be encoded for the cache."""


class StoreError(SmsRelayError):
    """The key-value store failed with something other than a missing key."""


class StoreUnavailable(StoreError):
    """The store could not be reached or an operation timed out."""


class StoreWriteFailed(StoreError):
    """The store rejected a write."""


class StoreReadFailed(StoreError):
    """The store rejected a read."""


class SmsNotFound(SmsRelayError):
    """No latest record exists for the sender (never written, or expired)."""

    def __init__(self, sender: str):
        super().__init__(f"no SMS record for sender {sender}")
        self.sender = sender


class CorruptRecord(SmsRelayError):
    """A cached payload exists but cannot be decoded into a record."""
