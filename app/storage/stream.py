"""Single-pass async byte streams returned by StorageBackend.get()."""

from typing import AsyncIterator, Awaitable, Callable, Optional

import httpx


DEFAULT_CHUNK_SIZE = 64 * 1024


class ByteStream:
    """Read-only, forward-only stream of object bytes.

    Wraps an async chunk iterator together with the resource that produces
    it (usually an open HTTP response or file handle). The resource is
    released when the stream is exhausted, when iteration fails, or when the
    caller closes the stream early; closing early is a normal termination.

    Usage:
        async with stream:
            async for chunk in stream:
                ...
    """

    def __init__(
        self,
        chunks: AsyncIterator[bytes],
        close: Optional[Callable[[], Awaitable[None]]] = None,
        status_code: Optional[int] = None,
    ):
        self._chunks = chunks
        self._close = close
        self._iterator = None
        self._released = False
        self.status_code = status_code
        self.bytes_read = 0

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> "ByteStream":
        """Adapt a response opened with ``client.send(..., stream=True)``."""
        return cls(
            response.aiter_bytes(),
            close=response.aclose,
            status_code=response.status_code,
        )

    @classmethod
    def from_bytes(cls, data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> "ByteStream":
        async def chunks():
            for offset in range(0, len(data), chunk_size):
                yield data[offset:offset + chunk_size]

        return cls(chunks())

    @property
    def closed(self) -> bool:
        return self._released

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._iterator is not None:
            raise RuntimeError("ByteStream can only be iterated once")
        if self._released:
            raise RuntimeError("ByteStream is closed")
        self._iterator = self._iterate()
        return self._iterator

    async def _iterate(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._chunks:
                if not chunk:
                    continue
                self.bytes_read += len(chunk)
                yield chunk
        finally:
            await self._release()

    async def _release(self) -> None:
        if self._released:
            return
        self._released = True

        source_close = getattr(self._chunks, "aclose", None)
        try:
            if source_close is not None:
                await source_close()
        finally:
            if self._close is not None:
                await self._close()

    async def aclose(self) -> None:
        """Release the underlying connection. Safe to call more than once."""
        if self._iterator is not None:
            await self._iterator.aclose()
        await self._release()

    async def read(self) -> bytes:
        """Drain the remaining stream into memory."""
        return b"".join([chunk async for chunk in self])

    async def __aenter__(self) -> "ByteStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
