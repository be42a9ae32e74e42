from __future__ import annotations

__all__ = [
    "ConfigError",
    "DuplicateTokenError",
    "MessageRejected",
    "MigrationError",
    "ShareError",
    "StoreConnectionError",
]


class ShareError(Exception):
    """Base domain error for the one-time share service."""


class ConfigError(ShareError):
    """Raised on configuration loading/validation failures (fatal at startup)."""


class StoreConnectionError(ShareError, ConnectionError):
    """Raised when the backing storage can't be opened. Fatal at startup."""


class DuplicateTokenError(ShareError):
    """Raised when a message is saved under a token that already exists.

    Tokens are expected to be collision-free, so callers treat this as an
    internal failure rather than something to retry blindly.
    """

    def __init__(self, message_token: str) -> None:
        super().__init__("message with this message_token already exists")
        self.message_token = message_token


class MessageRejected(ShareError):
    """A new message breaks one of the identity's limits (do not retry as is)."""

    def __init__(self, reason: str, detail: str) -> None:
        super().__init__(detail)
        self.reason = reason
        self.detail = detail


class MigrationError(ShareError):
    """Raised when no upgrade chain leads from the stored schema version to the latest one."""
