"""Shared test fixtures."""

import pytest

from casengine import DirectoryEngine

from tests.helpers import REFERENCE_PATTERN, REFERENCE_TEMPLATE


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine(tmp_path, anyio_backend):
    """Directory engine using the reference layout under tmp_path."""
    engine = DirectoryEngine(tmp_path, REFERENCE_TEMPLATE, extractor=REFERENCE_PATTERN)
    yield engine
    if not engine.closed:
        await engine.close()


@pytest.fixture
def blob_path(tmp_path):
    """Factory returning where the reference layout stores a digest string."""
    def _blob_path(digest: str):
        algorithm, encoded = digest.split(":", 1)
        return tmp_path / "blobs" / algorithm / encoded[:2] / encoded
    return _blob_path
