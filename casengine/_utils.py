from __future__ import annotations

from typing import Any, AsyncGenerator, AsyncIterable, Iterable, Protocol

import anyio

from .engine import DEFAULT_CHUNK_SIZE, ByteSource


class Sink(Protocol):
    def update(self, data: bytes) -> Any:
        ...


async def iter_chunks(
    source: ByteSource, size: int = DEFAULT_CHUNK_SIZE
) -> AsyncGenerator[bytes, None]:
    """Yield the content of `source` in chunks of at most `size` bytes.

    `source` may be bytes-like, an async iterable of bytes, or an object
    with an async ``read(size)`` method.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        view = memoryview(source)
        for start in range(0, len(view), size):
            yield bytes(view[start : start + size])
    elif isinstance(source, AsyncIterable):
        async for data in source:
            if data:
                yield bytes(data)
    elif hasattr(source, "read"):
        while True:
            data = await source.read(size)
            if not data:
                break
            yield data
    else:
        raise TypeError(f"cannot read bytes from {type(source).__name__}")


async def fan_out_copy(
    source: ByteSource,
    destination: anyio.AsyncFile[bytes],
    sinks: Iterable[Sink],
    size: int = DEFAULT_CHUNK_SIZE,
) -> None:
    """Copy `source` into `destination`, feeding each chunk to every sink too."""
    sinks = list(sinks)
    async for data in iter_chunks(source, size):
        await destination.write(data)
        for sink in sinks:
            sink.update(data)


async def find_files(root: anyio.Path, pattern: str) -> list[anyio.Path]:
    """Return the files under `root` matching glob `pattern`, sorted."""
    matches = []
    async for path in root.glob(pattern):
        if await path.is_file():
            matches.append(path)
    return sorted(matches, key=lambda path: path.parts)
