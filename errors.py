"""Exception types raised by the monitor components."""


class MonitorError(Exception):
    """Base class for monitor failures."""


class AuthError(MonitorError):
    """Raised when the catalog session cannot be authenticated."""


class FetchError(MonitorError):
    """Raised when a catalog request fails (network, timeout, bad payload)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(MonitorError):
    """Raised when the snapshot store is unavailable."""


class DeliveryError(MonitorError):
    """Raised when a single notification could not be sent."""
