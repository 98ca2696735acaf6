# -*- coding: utf-8 -*-
"""Digest values and the registry of supported hash algorithms."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .errors import DigestMismatchError, MalformedDigestError

if TYPE_CHECKING:
    from .engine import BlobStream


_HEX = re.compile(r"^[a-f0-9]+$")


class Algorithm(str, Enum):
    """Supported digest algorithms, in ascending order.

    Enumeration order is relied on by `list_algorithms` pagination.
    """

    SHA256 = "sha256"
    SHA384 = "sha384"
    SHA512 = "sha512"

    def __str__(self) -> str:
        return self.value

    @property
    def size(self) -> int:
        """Length of the hex-encoded digest"""
        return hashlib.new(self.value).digest_size * 2

    def hasher(self) -> Any:
        """Return a fresh incremental hasher for this algorithm."""
        return hashlib.new(self.value)

    def validate(self, encoded: str) -> None:
        if len(encoded) != self.size or not _HEX.match(encoded):
            raise MalformedDigestError(
                f"invalid {self.value} encoded portion {encoded!r}: expected "
                f"{self.size} lowercase hex characters"
            )

    @classmethod
    def parse(cls, name: str | Algorithm) -> Algorithm:
        try:
            return cls(name)
        except ValueError:
            raise MalformedDigestError(
                f"unsupported digest algorithm {name!r}"
            ) from None


@dataclass(frozen=True)
class Digest:
    """Algorithm-tagged hash identifying a blob.

    Attributes:
        algorithm: The hash algorithm.
        encoded: Lowercase hex encoding of the hash output.
    """

    algorithm: Algorithm
    encoded: str

    def __post_init__(self):
        algorithm = Algorithm.parse(self.algorithm)
        algorithm.validate(self.encoded)
        object.__setattr__(self, "algorithm", algorithm)

    @classmethod
    def parse(cls, value: str) -> Digest:
        """Parse a canonical ``algorithm:encoded`` string.

        Raises:
            MalformedDigestError: If `value` has no colon, names an unsupported
                algorithm, or has an encoded portion of the wrong shape.
        """
        algorithm, sep, encoded = value.partition(":")
        if not sep:
            raise MalformedDigestError(f"invalid digest format: {value!r}")
        return cls(Algorithm.parse(algorithm), encoded)

    @classmethod
    def from_hasher(cls, algorithm: Algorithm, hasher: Any) -> Digest:
        return cls(algorithm, hasher.hexdigest())

    @classmethod
    def from_bytes(cls, data: bytes, algorithm: Algorithm = Algorithm.SHA256) -> Digest:
        hasher = algorithm.hasher()
        hasher.update(data)
        return cls.from_hasher(algorithm, hasher)

    def canonical_string(self) -> str:
        return f"{self.algorithm.value}:{self.encoded}"

    def verifier(self) -> DigestVerifier:
        return DigestVerifier(self)

    def __str__(self) -> str:
        return self.canonical_string()


class DigestVerifier:
    """Write-only sink that checks streamed content against a digest.

    Feed every chunk read from a `get` stream through `update()`, then call
    `verified()` once the stream is drained.
    """

    def __init__(self, digest: Digest):
        self._digest = digest
        self._hasher = digest.algorithm.hasher()

    def update(self, data: bytes) -> None:
        self._hasher.update(data)

    write = update

    def verified(self) -> bool:
        return self._hasher.hexdigest() == self._digest.encoded


async def verified_read(stream: BlobStream, digest: Digest) -> bytes:
    """Drain `stream`, returning its content if it matches `digest`.

    The stream is not closed; that stays with the caller.

    Raises:
        DigestMismatchError: If the content does not hash to `digest`.
    """
    verifier = digest.verifier()
    chunks = []
    async for chunk in stream:
        verifier.update(chunk)
        chunks.append(chunk)

    if not verifier.verified():
        raise DigestMismatchError(f"content does not match {digest}")

    return b"".join(chunks)
