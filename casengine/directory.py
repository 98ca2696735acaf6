# -*- coding: utf-8 -*-
"""CAS engine backed by a directory on the local filesystem."""

from __future__ import annotations

import logging
import os
import pathlib
import re
import shutil
import tempfile
from typing import AsyncGenerator
from urllib.parse import unquote, urlsplit
from uuid import uuid4

import anyio
from anyio import to_thread

from ._utils import fan_out_copy, find_files
from .counter import ByteCounter
from .digest import Algorithm, Digest
from .engine import (
    DEFAULT_CHUNK_SIZE,
    AlgorithmCallback,
    BlobStream,
    ByteSource,
    DigestCallback,
)
from .errors import (
    BlobNotFoundError,
    EngineClosedError,
    MalformedExtractorError,
    TemplateExpansionError,
)
from .pagination import has_prefix, paginate
from .template import AddressTemplate, Extractor, RegexDigestExtractor

logger = logging.getLogger(__name__)

PathLikeArg = str | os.PathLike[str]

SCRATCH_PREFIX = ".casengine-"

# expansions are resolved against this and then placed under the root
BASE = "file:///"


class FileBlobStream(BlobStream):
    """`BlobStream` over an open store file."""

    def __init__(self, file: anyio.AsyncFile[bytes], path: anyio.Path):
        self._file = file
        self._path = path

    @property
    def path(self) -> str:
        return str(self._path)

    async def receive(self, max_bytes: int = DEFAULT_CHUNK_SIZE) -> bytes:
        return await self._file.read(max_bytes)

    async def aclose(self) -> None:
        await self._file.aclose()


class DirectoryEngine:
    """Stores blobs in a directory, at paths computed from an `AddressTemplate`.

    The template is resolved against ``file:///`` and the resulting path is
    taken relative to `root`, so ``blobs/{algorithm}/{encoded:2}/{encoded}``
    and ``/blobs/{algorithm}/{encoded:2}/{encoded}`` both store
    ``sha256:dffd...`` at ``<root>/blobs/sha256/df/dffd...``.

    A private scratch directory is created under `root` right away and removed
    on [`close()`][casengine.directory.DirectoryEngine.close]. Puts are written
    there first and renamed into place, so a partially written blob is never
    visible and concurrent puts don't need any locking.

    Attributes:
        algorithm: Algorithm used by `put()` when none is given.

    Parameters:
        root: Existing directory used as the root of the store.
        template: Template mapping a digest to a path under `root`.
        extractor: Recovers a digest from a path relative to `root`; a
            regular expression with ``algorithm`` and ``encoded`` groups, or a
            callable returning those components. Required by `list_digests()`.
        algorithm: Default algorithm for `put()`.
        fmode: Mode set on stored files. Blobs never change, so the default
            makes them read-only.
        dmode: Mode for created directories (subject to the umask).
    """

    def __init__(
        self,
        root: PathLikeArg,
        template: str | AddressTemplate,
        extractor: Extractor | str | None = None,
        algorithm: Algorithm | str = Algorithm.SHA256,
        fmode: int = 0o444,
        dmode: int = 0o777,
    ):
        if not isinstance(template, AddressTemplate):
            template = AddressTemplate(template)
        if isinstance(extractor, (str, re.Pattern)):
            extractor = RegexDigestExtractor(extractor)

        sync_root = pathlib.Path(root)
        if not sync_root.is_dir():
            raise FileNotFoundError(f"{root} is not a directory")
        sync_root = sync_root.resolve()

        self._sync_root = sync_root
        self._root = anyio.Path(sync_root)
        self._base = BASE
        self._template = template
        self._extractor = extractor
        self.algorithm = Algorithm.parse(algorithm)
        self._fmode = fmode
        self._dmode = dmode

        # creation is sync, like the rest of construction
        self._scratch_path = pathlib.Path(
            tempfile.mkdtemp(prefix=SCRATCH_PREFIX, dir=sync_root)
        )
        self._closed = False

    @property
    def root(self) -> str:
        """The store's root directory path"""
        return str(self._root)

    @property
    def base(self) -> str:
        """``file:`` URI the template is resolved against"""
        return self._base

    @property
    def template(self) -> AddressTemplate:
        return self._template

    @property
    def scratch_path(self) -> str:
        return str(self._scratch_path)

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise EngineClosedError(f"{self!r} is closed")

    def _location_to_path(self, location: str) -> pathlib.Path:
        """Convert an expanded ``file:`` location to a path inside the root."""
        uri = urlsplit(location)
        if (
            uri.scheme != "file"
            or uri.netloc
            or uri.query
            or uri.fragment
            or "?" in location
            or "#" in location
        ):
            raise TemplateExpansionError(
                f"invalid location {location!r}: expected a file URI path"
            )

        path = pathlib.Path(
            os.path.normpath(self._sync_root.joinpath(unquote(uri.path).lstrip("/")))
        )
        if self._sync_root not in path.parents:
            raise TemplateExpansionError(
                f"location {location!r} is outside of {self._sync_root}"
            )
        return path

    def path(self, digest: Digest) -> anyio.Path:
        """Return the path `digest` is stored at."""
        return anyio.Path(self._location_to_path(self._template.expand(digest, self._base)))

    async def put(
        self, source: ByteSource, algorithm: Algorithm | str | None = None
    ) -> Digest:
        """Store all of `source` and return its digest.

        Content is hashed while it's copied to a temporary file, which is then
        renamed to the digest's path. On any failure, cancellation included,
        the temporary file is removed before the error propagates.

        Parameters:
            source: Bytes, an async iterable of bytes, or an object with an
                async ``read(size)``, e.g. a `BlobStream`.
            algorithm: Digest algorithm; `None` or ``""`` uses `self.algorithm`.

        Returns:
            Digest: The digest of the stored content.
        """
        self._check_open()
        algorithm = Algorithm.parse(algorithm) if algorithm else self.algorithm

        hasher = algorithm.hasher()
        counter = ByteCounter()
        scratch_path = anyio.Path(self._scratch_path).joinpath(f"blob-{uuid4().hex}")

        try:
            scratch_file = await anyio.open_file(scratch_path, "xb")
            try:
                await fan_out_copy(source, scratch_file, (hasher, counter))
            finally:
                with anyio.CancelScope(shield=True):
                    await scratch_file.aclose()

            digest = Digest.from_hasher(algorithm, hasher)
            dest_path = self.path(digest)

            await dest_path.parent.mkdir(parents=True, mode=self._dmode, exist_ok=True)
            await scratch_path.chmod(self._fmode)

            # this is the atomic part
            await scratch_path.replace(dest_path)
        except BaseException:
            with anyio.CancelScope(shield=True):
                try:
                    await scratch_path.unlink(missing_ok=True)
                except OSError:
                    logger.exception("failed to remove temporary file %s", scratch_path)
            raise

        logger.debug("stored %s (%d bytes) at %s", digest, counter.count, dest_path)
        return digest

    async def get(self, digest: Digest) -> BlobStream:
        """Open the content stored for `digest`.

        Raises:
            BlobNotFoundError: If nothing is stored for `digest`.
        """
        self._check_open()
        path = self.path(digest)
        try:
            file = await anyio.open_file(path, "rb")
        except FileNotFoundError as exc:
            raise BlobNotFoundError(f"{digest} not found at {path}") from exc
        return FileBlobStream(file, path)

    async def delete(self, digest: Digest) -> None:
        """Delete the content stored for `digest`.
        No exception is raised if it doesn't exist.
        """
        self._check_open()
        await self.path(digest).unlink(missing_ok=True)

    async def list_algorithms(
        self,
        callback: AlgorithmCallback,
        prefix: str = "",
        size: int = -1,
        from_: int = 0,
    ) -> None:
        """Enumerate the algorithms `put()` supports, whether or not any
        content is stored with them.
        """
        self._check_open()
        await paginate(
            (algorithm for algorithm in Algorithm if has_prefix(algorithm.value, prefix)),
            callback,
            size,
            from_,
        )

    async def list_digests(
        self,
        callback: DigestCallback,
        algorithm: Algorithm | str | None = None,
        prefix: str = "",
        size: int = -1,
        from_: int = 0,
    ) -> None:
        """Enumerate stored digests.

        Paths matching the template's glob are mapped back to digests with the
        extractor, in sorted path order. Paths that don't yield a digest are
        logged and skipped.

        Parameters:
            callback: Called with each digest in the window.
            algorithm: Only list digests of this algorithm.
            prefix: Only list digests whose encoded value starts with this.
            size: Maximum number of digests, ``-1`` for no limit.
            from_: Number of matching digests to skip first.

        Raises:
            MalformedExtractorError: If the engine has no extractor.
        """
        self._check_open()
        if self._extractor is None:
            raise MalformedExtractorError(f"{self!r} has no digest extractor")

        await paginate(
            self._digests(Algorithm.parse(algorithm) if algorithm else None, prefix),
            callback,
            size,
            from_,
        )

    async def _digests(
        self, algorithm: Algorithm | None, prefix: str
    ) -> AsyncGenerator[Digest, None]:
        glob = self._location_to_path(self._template.glob(algorithm, self._base))
        pattern = glob.relative_to(self._sync_root).as_posix()

        for path in await find_files(self._root, pattern):
            relative = pathlib.PurePath(path).relative_to(self._sync_root)
            # scratch directories of this and any other engine on the root
            if relative.parts[0].startswith(SCRATCH_PREFIX):
                continue

            try:
                digest = AddressTemplate.match(relative.as_posix(), self._extractor)
            except ValueError as exc:
                logger.warning("cannot compute digest for %r (%s)", relative.as_posix(), exc)
                continue

            if algorithm is not None and digest.algorithm is not algorithm:
                continue
            if has_prefix(digest.encoded, prefix):
                yield digest

    async def close(self) -> None:
        """Remove the scratch directory. Later calls raise `EngineClosedError`."""
        self._check_open()
        self._closed = True
        await to_thread.run_sync(shutil.rmtree, self._scratch_path)

    async def __aenter__(self) -> DirectoryEngine:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if not self._closed:
            await self.close()

    def __repr__(self) -> str:
        return f"DirectoryEngine({self.root!r}, {self._template.template!r})"
