"""Error taxonomy for the bridge core.

Configuration and reply-lookup misses are not errors: lookups return
``None`` and the relays drop or degrade silently. Persistence failures are
absorbed by the store adapter.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for every error raised by the bridge core."""


class ConfigError(BridgeError):
    """Invalid or incomplete configuration."""


class UnsupportedMessageKindError(BridgeError):
    """The incoming event has a kind the bridge does not relay."""


class MediaUnavailableError(BridgeError):
    """An attachment could not be downloaded or re-uploaded."""


class SendError(BridgeError):
    """The destination platform rejected a send call."""


class TransientSendError(SendError):
    """A network timeout that is worth retrying."""


class PayloadTooLargeError(SendError):
    """The destination refused the payload because of its size."""


class RetryExhaustedError(SendError):
    """Transient failures kept happening past the retry budget."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
