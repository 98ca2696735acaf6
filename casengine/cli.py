"""Command line for retrieving blobs from CAS engines."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence

import anyio
import httpx
import typer

from .__meta__ import __version__
from .digest import Digest, verified_read
from .engine import ReadCloser
from .errors import CasError, DigestMismatchError
from .registry import EngineReference, load_references, open_engines
from .remote import file_client

logger = logging.getLogger(__name__)

LOG_LEVELS = ("critical", "error", "warning", "info", "debug")

app = typer.Typer(help="""\
Open Container Initiative Content Addressable Storage.

Engine references are read as a JSON list from stdin.""")


@app.callback()
def main(
    ctx: typer.Context,
    log_level: str = typer.Option(
        "error", "--log-level", help=f"Log level ({', '.join(LOG_LEVELS)})"
    ),
    file: Optional[Path] = typer.Option(
        None,
        "--file",
        help="Effective root for file URIs. To allow access to your entire "
        "filesystem, use '--file /'. Without it, file URIs are not served.",
    ),
):
    if log_level.lower() not in LOG_LEVELS:
        raise typer.BadParameter(f"unknown log level {log_level!r}", param_hint="--log-level")

    logging.basicConfig(
        level=log_level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )
    ctx.obj = {"file": file}


@app.command()
def get(
    ctx: typer.Context,
    digests: List[str] = typer.Argument(..., help="Digests to retrieve"),
):
    """Retrieve blobs from the store and write them to stdout."""
    parsed = []
    for value in digests:
        try:
            parsed.append(Digest.parse(value))
        except CasError as exc:
            logger.error("failed to parse digest %s: %s", value, exc)
            raise typer.Exit(1)

    try:
        references = load_references(typer.get_binary_stream("stdin").read())
    except CasError as exc:
        logger.error("failed to read engine config from stdin: %s", exc)
        raise typer.Exit(1)

    file_root = ctx.obj["file"] if ctx.obj else None
    if not anyio.run(_get, parsed, references, file_root):
        raise typer.Exit(1)


@app.command()
def version():
    """Print the casengine version."""
    typer.echo(__version__)


async def _get(
    digests: Sequence[Digest],
    references: Sequence[EngineReference],
    file_root: Path | None,
) -> bool:
    if file_root is not None:
        client = file_client(file_root)
    else:
        client = httpx.AsyncClient(follow_redirects=True)

    async with client:
        engines = open_engines(references, client=client)
        if not engines:
            logger.error("failed to load any engine configurations")
            return False

        try:
            for digest in digests:
                if not await _get_one(digest, engines):
                    logger.error("failed to retrieve %s", digest)
                    return False
        finally:
            for engine in engines:
                await engine.close()

    return True


async def _get_one(digest: Digest, engines: Sequence[ReadCloser]) -> bool:
    logger.debug("getting %s with %s", digest, engines)
    for engine in engines:
        logger.debug("checking engine %r", engine)
        try:
            async with await engine.get(digest) as stream:
                data = await verified_read(stream, digest)
        except DigestMismatchError:
            logger.warning("invalid bytes for %s from %r", digest, engine)
            continue
        except (CasError, httpx.HTTPError, OSError) as exc:
            logger.warning("failed to get %s: %s", digest, exc)
            continue

        stdout = typer.get_binary_stream("stdout")
        stdout.write(data)
        stdout.flush()
        return True

    return False
