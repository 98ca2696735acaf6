# -*- coding: utf-8 -*-
"""Byte-counting sink, e.g. for measuring content streamed into a store."""


class ByteCounter:
    """Counts the bytes written to it.

    Has the same ``update()`` interface as a hasher, so it can sit next to
    one in a fan-out copy.
    """

    def __init__(self) -> None:
        self._count = 0

    def update(self, data: bytes) -> None:
        self._count += len(data)

    def write(self, data: bytes) -> int:
        self.update(data)
        return len(data)

    @property
    def count(self) -> int:
        return self._count
