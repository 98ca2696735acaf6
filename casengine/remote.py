# -*- coding: utf-8 -*-
"""Read-only CAS engine fetching blobs from URI-Template locations."""

from __future__ import annotations

import logging
import os
import pathlib
from typing import Any, AsyncIterator, Mapping
from urllib.parse import unquote

import anyio
import httpx

from .digest import Digest
from .engine import DEFAULT_CHUNK_SIZE, BlobStream
from .errors import (
    BlobNotFoundError,
    ConfigNotMappingError,
    EngineClosedError,
    MissingUriError,
    TemplateExpansionError,
    TransportError,
    UriNotStringError,
)
from .template import AddressTemplate

logger = logging.getLogger(__name__)

PROTOCOL = "oci-cas-template-v1"

_SUCCESS = frozenset({httpx.codes.OK, httpx.codes.NO_CONTENT})


class ResponseBlobStream(BlobStream):
    """`BlobStream` over a streamed `httpx.Response` body."""

    def __init__(self, response: httpx.Response):
        self._response = response
        self._chunks = response.aiter_bytes()
        self._buffer = b""

    @property
    def url(self) -> str:
        return str(self._response.request.url)

    @property
    def status_code(self) -> int:
        return self._response.status_code

    async def receive(self, max_bytes: int = DEFAULT_CHUNK_SIZE) -> bytes:
        while not self._buffer:
            try:
                self._buffer = await self._chunks.__anext__()
            except StopAsyncIteration:
                return b""

        data, self._buffer = self._buffer[:max_bytes], self._buffer[max_bytes:]
        return data

    async def aclose(self) -> None:
        await self._response.aclose()


class TemplateEngine:
    """Fetches blobs from the location a template expands to.

    Each `get()` issues exactly one ``GET``. There are no retries and the
    response body is not verified against the digest.

    Parameters:
        base: Location relative expansions are resolved against. May be
            `None` when the template always expands to an absolute URI.
        template: Template mapping a digest to a fetch location.
        client: `httpx.AsyncClient` to fetch with. When omitted the engine
            creates one, following redirects, and closes it in `close()`.
    """

    def __init__(
        self,
        base: str | None,
        template: str | AddressTemplate,
        client: httpx.AsyncClient | None = None,
    ):
        if not isinstance(template, AddressTemplate):
            template = AddressTemplate(template)

        self._base = base or None
        self._template = template
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=True)
        self._closed = False

    @classmethod
    def from_config(
        cls,
        base: str | None,
        config: Any,
        client: httpx.AsyncClient | None = None,
    ) -> TemplateEngine:
        """Create an engine from an ``oci-cas-template-v1`` configuration.

        Raises:
            ConfigNotMappingError: If `config` is not a mapping.
            MissingUriError: If `config` has no ``uri``.
            UriNotStringError: If ``uri`` is not a string.
            MalformedTemplateError: If ``uri`` is not a valid template.
        """
        if not isinstance(config, Mapping):
            raise ConfigNotMappingError(config)
        if "uri" not in config:
            raise MissingUriError(config)
        if not isinstance(config["uri"], str):
            raise UriNotStringError(config)

        return cls(base, AddressTemplate(config["uri"]), client=client)

    @property
    def base(self) -> str | None:
        return self._base

    @property
    def template(self) -> AddressTemplate:
        return self._template

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise EngineClosedError(f"{self!r} is closed")

    def url(self, digest: Digest) -> str:
        """Return the location `digest` is fetched from."""
        return self._template.expand(digest, self._base)

    def _pre_fetch(self, digest: Digest) -> httpx.Request:
        url = self.url(digest)
        # not build_request(): that merges with base_url and drops the scheme
        # of host-less URLs such as file:///a
        try:
            return httpx.Request(
                "GET",
                url,
                headers=self._client.headers,
                extensions={"timeout": self._client.timeout.as_dict()},
            )
        except httpx.InvalidURL as exc:
            raise TemplateExpansionError(f"invalid location {url!r}: {exc}") from exc

    async def _post_fetch(self, response: httpx.Response) -> BlobStream:
        if response.status_code in _SUCCESS:
            return ResponseBlobStream(response)

        await response.aclose()

        url = str(response.request.url)
        status = f"{response.status_code} {response.reason_phrase}"
        if response.status_code == httpx.codes.NOT_FOUND:
            raise BlobNotFoundError(f"requested {url} but got {status}")
        raise TransportError(f"requested {url} but got {status}", url=url, status=status)

    async def get(self, digest: Digest) -> BlobStream:
        """Fetch the content for `digest`.

        A ``200 OK`` or ``204 No Content`` response is content (an empty body
        included). ``404 Not Found`` raises `BlobNotFoundError`.

        Raises:
            BlobNotFoundError: If the server answers ``404``.
            TransportError: For any other status or a failed request.
        """
        self._check_open()
        request = self._pre_fetch(digest)
        logger.debug("fetching %s from %s", digest, request.url)

        try:
            response = await self._client.send(request, stream=True)
        except httpx.RequestError as exc:
            raise TransportError(
                f"request for {request.url} failed: {exc}", url=str(request.url)
            ) from exc

        return await self._post_fetch(response)

    async def close(self) -> None:
        """Close the HTTP client if the engine created it."""
        self._check_open()
        self._closed = True
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> TemplateEngine:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if not self._closed:
            await self.close()

    def __repr__(self) -> str:
        return f"TemplateEngine({self._base!r}, {self._template.template!r})"


class _FileByteStream(httpx.AsyncByteStream):
    def __init__(self, file: anyio.AsyncFile[bytes]):
        self._file = file

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            data = await self._file.read(DEFAULT_CHUNK_SIZE)
            if not data:
                break
            yield data

    async def aclose(self) -> None:
        await self._file.aclose()


class FileTransport(httpx.AsyncBaseTransport):
    """Serves ``file:`` URLs from a local directory.

    `root` is the effective filesystem root: ``file:///a/b`` is read from
    ``<root>/a/b``. Paths escaping `root` are refused with ``403``, missing
    files answer ``404``.
    """

    def __init__(self, root: str | os.PathLike[str]):
        self._root = pathlib.Path(root).resolve()

    @property
    def root(self) -> str:
        return str(self._root)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if request.method not in ("GET", "HEAD"):
            return httpx.Response(httpx.codes.METHOD_NOT_ALLOWED, request=request)

        path = self._root.joinpath(unquote(request.url.path).lstrip("/")).resolve()
        if path != self._root and self._root not in path.parents:
            return httpx.Response(httpx.codes.FORBIDDEN, request=request)

        try:
            file = await anyio.open_file(path, "rb")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return httpx.Response(httpx.codes.NOT_FOUND, request=request)

        if request.method == "HEAD":
            await file.aclose()
            return httpx.Response(httpx.codes.OK, request=request)

        return httpx.Response(
            httpx.codes.OK, stream=_FileByteStream(file), request=request
        )


def file_client(root: str | os.PathLike[str], **kwargs: Any) -> httpx.AsyncClient:
    """Return an `httpx.AsyncClient` that also serves ``file:`` URLs from `root`."""
    kwargs.setdefault("follow_redirects", True)
    return httpx.AsyncClient(mounts={"file://": FileTransport(root)}, **kwargs)
