from typing import Optional


class StatusPinError(Exception):
    """Base class for all errors raised by the status pin service."""


class ConfigurationError(StatusPinError):
    """
    Missing credential, unresolvable chat id or missing session log path.

    Fatal at startup: the reconciliation loop is never started.
    """


class SessionNotFoundError(StatusPinError):
    """
    No session registry entry matches the configured agent.

    Fatal to the current discovery attempt only; the registry watcher
    retries on the next change notification.
    """


class RemoteError(StatusPinError):
    """Non-success response (or transport failure) from OpenRouter."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TelegramAPIError(StatusPinError):
    """
    Bot API call answered with ``ok: false``.

    ``error_code`` mirrors the Bot API field (falls back to the HTTP status)
    and ``description`` carries the human readable reason, which is what
    distinguishes "not modified" from "not found" for a 400.
    """

    def __init__(self, method: str, error_code: Optional[int], description: str) -> None:
        super().__init__(f"Telegram {method}: {description}")
        self.method = method
        self.error_code = error_code
        self.description = description

    @property
    def is_not_modified(self) -> bool:
        return self.error_code == 400 and "not modified" in self.description.lower()


class TransientPublishError(StatusPinError):
    """Edit failed for a reason that does not prove the pinned message is gone."""


class PinTargetGoneError(StatusPinError):
    """Edit failed because the pinned message no longer exists."""


class WatchBackendError(StatusPinError):
    """The file watching backend failed; the watcher reattaches after a delay."""


__all__ = [
    "ConfigurationError",
    "PinTargetGoneError",
    "RemoteError",
    "SessionNotFoundError",
    "StatusPinError",
    "TelegramAPIError",
    "TransientPublishError",
    "WatchBackendError",
]
