"""Tests for the pagination window."""

import pytest

from casengine.pagination import has_prefix, paginate

pytestmark = pytest.mark.anyio

LETTERS = ["a", "b", "c", "d", "e"]


async def collect(candidates, size=-1, from_=0):
    seen = []
    await paginate(candidates, seen.append, size, from_)
    return seen


@pytest.mark.parametrize(
    "size,from_,expected",
    [
        (-1, 0, LETTERS),
        (1, 0, ["a"]),
        (2, 1, ["b", "c"]),
        (-1, 3, ["d", "e"]),
        (10, 0, LETTERS),
        (2, 4, ["e"]),
        (-1, 5, []),
        (0, 0, []),
    ],
)
async def test_window(size, from_, expected):
    assert await collect(LETTERS, size, from_) == expected


async def test_size_zero_does_no_work():
    """With size 0, candidates are never consumed."""
    def candidates():
        raise AssertionError("candidates consumed")
        yield  # pragma: no cover

    assert await collect(candidates(), size=0) == []


async def test_async_candidates_and_callback():
    async def candidates():
        for letter in LETTERS:
            yield letter

    seen = []

    async def callback(letter):
        seen.append(letter)

    await paginate(candidates(), callback, size=2, from_=1)
    assert seen == ["b", "c"]


async def test_stopping_early_closes_async_candidates():
    closed = []

    async def candidates():
        try:
            for letter in LETTERS:
                yield letter
        finally:
            closed.append(True)

    assert await collect(candidates(), size=1) == ["a"]
    assert closed == [True]


async def test_callback_error_aborts():
    """An error from the callback propagates unchanged and stops enumeration."""
    seen = []

    def callback(letter):
        seen.append(letter)
        if letter == "b":
            raise KeyError(letter)

    with pytest.raises(KeyError):
        await paginate(LETTERS, callback)
    assert seen == ["a", "b"]


@pytest.mark.parametrize("size,from_", [(-2, 0), (1, -1)])
async def test_invalid_window(size, from_):
    with pytest.raises(ValueError):
        await collect(LETTERS, size, from_)


async def test_has_prefix():
    assert has_prefix("sha256", "")
    assert has_prefix("sha256", "sha2")
    assert not has_prefix("sha256", "sha5")
