"""Shared test constants and utilities."""

from casengine.engine import DEFAULT_CHUNK_SIZE, BlobStream

HELLO = b"Hello, World!"

SHA256_HELLO = "sha256:dffd6021bb2bd5b0af676290809ec3a53191dd81c7f70a4b28688a362182986f"
SHA256_EMPTY = "sha256:e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
SHA512_HELLO = (
    "sha512:374d794a95cdcfd8b35993185fef9ba368f160d8daf432d08ba9f1ed1e5abe6cc6"
    "9291e0fa2fe0006a52570ef18c19def4e617c33ce52ef0a6e5fbe318cb0387"
)

REFERENCE_TEMPLATE = "blobs/{algorithm}/{encoded:2}/{encoded}"
REFERENCE_PATTERN = (
    r"^blobs/(?P<algorithm>[a-z0-9+._-]+)/[a-zA-Z0-9=_-]{1,2}/"
    r"(?P<encoded>[a-zA-Z0-9=_-]{1,})$"
)


class BytesBlobStream(BlobStream):
    """In-memory BlobStream for exercising stream consumers."""

    def __init__(self, data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self._data = data
        self.chunk_size = chunk_size
        self.closed = False

    async def receive(self, max_bytes: int = DEFAULT_CHUNK_SIZE) -> bytes:
        data, self._data = self._data[:max_bytes], self._data[max_bytes:]
        return data

    async def aclose(self) -> None:
        self.closed = True
