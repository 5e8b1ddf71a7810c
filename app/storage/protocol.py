"""Storage backend protocol definition."""

from typing import Optional, Protocol

from app.storage.stream import ByteStream


class StorageBackend(Protocol):
    """Protocol every storage backend implements.

    Objects are addressed by one opaque key (the generated file name), so
    flat object stores and directory-based backends share the same contract.
    The backend is selected once at startup and injected wherever it is
    needed; nothing outside ``app.storage.create_storage`` asks which
    backend it is talking to.
    """

    name: str

    async def save(self, key: str, data: bytes) -> None:
        """Store ``data`` under ``key``, overwriting any existing object.

        The content type is guessed from the key's extension.

        Raises:
            DatasourceError: If the object could not be stored
        """
        ...

    async def delete(self, key: str) -> None:
        """Remove the object. Deleting a missing key is not an error."""
        ...

    async def clear(self) -> bool:
        """Delete every object in the backend's namespace.

        Never raises; failures are logged and reported as False.
        """
        ...

    async def get(self, key: str, start: int = 0, end: Optional[int] = None) -> Optional[ByteStream]:
        """Open a stream over bytes ``start`` through ``end`` (inclusive).

        Args:
            key: Object key
            start: First byte offset
            end: Last byte offset, or None to read through the end of the object

        Returns:
            ByteStream the caller must drain or close, or None if the object
            does not exist

        Raises:
            DatasourceError: If the read failed for any other reason
        """
        ...

    async def size(self, key: str) -> Optional[int]:
        """Stored byte length of one object, or None if it does not exist."""
        ...

    async def full_size(self) -> int:
        """Sum of the sizes of all stored objects (0 if empty)."""
        ...

    async def aclose(self) -> None:
        """Release connections held by the backend (called at shutdown)."""
        ...
