from __future__ import annotations


class RelayError(RuntimeError):
    """Base error raised by the chat relay."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class PayloadError(RelayError):
    """Raised when a channel payload lacks the fields the relay needs."""

    def __init__(self, message: str) -> None:
        super().__init__("PAYLOAD_INVALID", message)


class StoreError(RelayError):
    """Raised when the key-value store backend fails."""

    def __init__(self, message: str) -> None:
        super().__init__("STORE_FAILED", message)
