"""Tagged results for remote storage calls."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from app.storage.errors import DatasourceError, ProviderError, TransportError


T = TypeVar("T")


class ResultStatus(str, Enum):
    OK = "ok"
    PROVIDER_ERROR = "provider_error"
    TRANSPORT_ERROR = "transport_error"


@dataclass
class StorageResult(Generic[T]):
    """Outcome of one call against the remote store.

    Callers decide whether to raise, log or ignore a failure instead of the
    client deciding for them.
    """

    operation: str
    status: ResultStatus
    value: Optional[T] = None
    key: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ResultStatus.OK

    @property
    def is_not_found(self) -> bool:
        """True when the provider says the object does not exist."""
        if self.status_code == 404:
            return True
        error = (self.error or "").lower().replace(" ", "_")
        return error in ("not_found", "notfound", "no_such_key")

    def describe(self) -> str:
        """Format as ``error: message`` for logs."""
        return f"{self.error}: {self.message}"

    def to_exception(self) -> DatasourceError:
        exc_class = TransportError if self.status is ResultStatus.TRANSPORT_ERROR else ProviderError
        return exc_class(
            self.operation,
            self.describe(),
            key=self.key,
            status_code=self.status_code,
            error=self.error,
        )

    def unwrap(self) -> T:
        """Return the value, raising the matching DatasourceError on failure."""
        if not self.ok:
            raise self.to_exception()
        return self.value

    @classmethod
    def success(cls, operation: str, value: Any = None, **kwargs) -> "StorageResult":
        return cls(operation=operation, status=ResultStatus.OK, value=value, **kwargs)

    @classmethod
    def provider_error(cls, operation: str, **kwargs) -> "StorageResult":
        return cls(operation=operation, status=ResultStatus.PROVIDER_ERROR, **kwargs)

    @classmethod
    def transport_error(cls, operation: str, **kwargs) -> "StorageResult":
        return cls(operation=operation, status=ResultStatus.TRANSPORT_ERROR, **kwargs)
