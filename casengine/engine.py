# -*- coding: utf-8 -*-
"""Capability interfaces shared by every CAS engine.

Backends implement whichever subset of `Reader`, `Writer`, `Deleter`,
`AlgorithmLister`, `DigestLister` and `Closer` they support. Callers should
depend on the narrowest capability they need, so read-only backends can be
passed wherever only `Reader` is required.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Protocol,
    Union,
    runtime_checkable,
)

from .digest import Algorithm, Digest

AlgorithmCallback = Callable[[Algorithm], Union[Awaitable[Any], Any]]
DigestCallback = Callable[[Digest], Union[Awaitable[Any], Any]]

# bytes, an async iterable of chunks, or anything with an async `read(size)`
ByteSource = Union[bytes, bytearray, memoryview, AsyncIterable[bytes], Any]

DEFAULT_CHUNK_SIZE = 64 * 1024


class BlobStream(ABC):
    """Lazily-read, closable stream of blob content returned by `Reader.get`.

    The caller owns the stream and must close it, either with `aclose()` or
    by using it as an async context manager.
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE

    @abstractmethod
    async def receive(self, max_bytes: int = DEFAULT_CHUNK_SIZE) -> bytes:
        """Return up to `max_bytes` of content, or ``b""`` at end of stream."""

    @abstractmethod
    async def aclose(self) -> None:
        pass

    async def read(self, size: int = -1) -> bytes:
        """Read `size` bytes, or everything that is left when `size` is negative."""
        if size >= 0:
            return await self.receive(size) if size else b""

        chunks = []
        async for chunk in self:
            chunks.append(chunk)
        return b"".join(chunks)

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.receive(self.chunk_size)
            if not chunk:
                break
            yield chunk

    async def __aenter__(self) -> BlobStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


@runtime_checkable
class Reader(Protocol):
    async def get(self, digest: Digest) -> BlobStream:
        """Return a stream of the content stored for `digest`.

        Implementations are *not* required to verify that the content matches
        `digest`. Callers that need that should read through a
        `DigestVerifier` (see `casengine.digest.verified_read`).

        Raises:
            BlobNotFoundError: If nothing is stored for `digest`.
        """
        ...


@runtime_checkable
class Writer(Protocol):
    async def put(
        self, source: ByteSource, algorithm: Algorithm | str | None = None
    ) -> Digest:
        """Store all of `source` and return its digest under `algorithm`.

        `None` or ``""`` selects the engine's default algorithm. A put that
        fails leaves nothing visible at the digest's location.
        """
        ...


@runtime_checkable
class Deleter(Protocol):
    async def delete(self, digest: Digest) -> None:
        """Remove the content for `digest`. Deleting absent content succeeds."""
        ...


@runtime_checkable
class AlgorithmLister(Protocol):
    async def list_algorithms(
        self,
        callback: AlgorithmCallback,
        prefix: str = "",
        size: int = -1,
        from_: int = 0,
    ) -> None:
        """Call `callback` for each algorithm in the pagination window."""
        ...


@runtime_checkable
class DigestLister(Protocol):
    async def list_digests(
        self,
        callback: DigestCallback,
        algorithm: Algorithm | str | None = None,
        prefix: str = "",
        size: int = -1,
        from_: int = 0,
    ) -> None:
        """Call `callback` for each stored digest in the pagination window.

        `algorithm` restricts the listing to one algorithm and `prefix` to
        encoded values starting with it.
        """
        ...


@runtime_checkable
class Closer(Protocol):
    async def close(self) -> None:
        """Release resources held by the engine. Later calls will fail."""
        ...


@runtime_checkable
class ReadCloser(Reader, Closer, Protocol):
    pass


@runtime_checkable
class Engine(
    Reader, Writer, Deleter, AlgorithmLister, DigestLister, Closer, Protocol
):
    pass
