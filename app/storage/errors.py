"""Exceptions raised by storage backends."""

from typing import Optional


class DatasourceError(Exception):
    """A storage backend operation failed.

    Carries enough context to log the failure and to tell the caller which
    operation and key were involved.
    """

    def __init__(
        self,
        operation: str,
        message: str,
        key: Optional[str] = None,
        status_code: Optional[int] = None,
        error: Optional[str] = None,
    ):
        self.operation = operation
        self.key = key
        self.status_code = status_code
        self.error = error
        self.message = message
        super().__init__(f"{operation} failed: {message}")


class TransportError(DatasourceError):
    """Network failure or unreadable response from the remote store."""


class ProviderError(DatasourceError):
    """The remote store answered, but reported an error in its body or status."""


class DatasourceConfigError(Exception):
    """The configured backend cannot be built (missing or invalid settings)."""
