# -*- coding: utf-8 -*-
"""``(prefix, size, from)`` windowing shared by algorithm and digest listings."""

from __future__ import annotations

import inspect
from contextlib import aclosing, nullcontext
from typing import Any, AsyncIterable, Awaitable, Callable, Iterable, TypeVar, Union

T = TypeVar("T")


async def _aiter(candidates: Iterable[T]):
    for candidate in candidates:
        yield candidate


async def paginate(
    candidates: Iterable[T] | AsyncIterable[T],
    callback: Callable[[T], Union[Awaitable[Any], Any]],
    size: int = -1,
    from_: int = 0,
) -> None:
    """Deliver a window of `candidates` to `callback`.

    `candidates` must already be filtered and ordered. The first `from_`
    candidates are skipped, then at most `size` are delivered (``-1`` means
    no limit). With ``size == 0`` nothing is consumed from `candidates` at all.
    Anything `callback` raises stops the enumeration and propagates unchanged.

    Raises:
        ValueError: If `size` is below ``-1`` or `from_` is negative.
    """
    if size < -1:
        raise ValueError(f"size must be -1 or greater, not {size}")
    if from_ < 0:
        raise ValueError(f"from must not be negative, not {from_}")
    if size == 0:
        return

    if not isinstance(candidates, AsyncIterable):
        candidates = _aiter(candidates)

    offset = 0
    count = 0
    closing = aclosing(candidates) if hasattr(candidates, "aclose") else nullcontext()
    async with closing:
        async for candidate in candidates:
            if offset >= from_:
                result = callback(candidate)
                if inspect.isawaitable(result):
                    await result
                count += 1
                if size != -1 and count >= size:
                    return
            offset += 1


def has_prefix(value: str, prefix: str) -> bool:
    return not prefix or value.startswith(prefix)
