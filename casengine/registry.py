# -*- coding: utf-8 -*-
"""Assemble engines from engine-reference configuration.

An engine reference names a protocol, a base location and opaque protocol
data::

    [{"uri": "https://example.com/",
      "config": {"protocol": "oci-cas-template-v1",
                 "data": {"uri": "blobs/{algorithm}/{encoded}"}}}]

Constructors are looked up in an explicit mapping rather than a table that
modules register themselves into.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

import httpx

from . import remote
from .engine import ReadCloser
from .errors import ConfigError

logger = logging.getLogger(__name__)

Constructor = Callable[..., ReadCloser]

CONSTRUCTORS: Mapping[str, Constructor] = MappingProxyType(
    {
        remote.PROTOCOL: remote.TemplateEngine.from_config,
    }
)


@dataclass(frozen=True)
class EngineReference:
    """One entry of an engine-reference list.

    Attributes:
        protocol: Name of the engine protocol, a key of the constructor mapping.
        uri: Base location for the engine, if any.
        data: Protocol-specific configuration passed to the constructor.
    """

    protocol: str
    uri: str | None = None
    data: Any = field(default_factory=dict)

    @classmethod
    def from_dict(cls, value: Any) -> EngineReference:
        if not isinstance(value, Mapping):
            raise ConfigError(f"engine reference is not an object: {value!r}")

        config = value.get("config")
        if not isinstance(config, Mapping):
            raise ConfigError(f"engine reference missing 'config' object: {value!r}")

        protocol = config.get("protocol")
        if not isinstance(protocol, str):
            raise ConfigError(
                f"engine reference config missing 'protocol' string: {value!r}"
            )

        uri = value.get("uri")
        if uri is not None and not isinstance(uri, str):
            raise ConfigError(f"engine reference 'uri' is not a string: {value!r}")

        return cls(protocol=protocol, uri=uri, data=config.get("data", {}))


def load_references(text: str | bytes) -> list[EngineReference]:
    """Parse a JSON list of engine references.

    Raises:
        ConfigError: If `text` isn't JSON or isn't a list of references.
    """
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid engine references: {exc}") from exc

    if not isinstance(value, list):
        raise ConfigError(f"engine references must be a list, not {type(value).__name__}")

    return [EngineReference.from_dict(item) for item in value]


def open_engines(
    references: Iterable[EngineReference],
    constructors: Mapping[str, Constructor] = CONSTRUCTORS,
    client: httpx.AsyncClient | None = None,
) -> list[ReadCloser]:
    """Construct an engine for each reference that can be opened.

    References with an unknown protocol are skipped, as are references whose
    constructor fails; both are logged. The caller owns the returned engines
    and must close them.

    Parameters:
        references: Engine references, in order of preference.
        constructors: Protocol name to constructor mapping.
        client: HTTP client handed to every constructor, e.g. one built by
            [`file_client()`][casengine.remote.file_client].
    """
    engines = []
    for reference in references:
        constructor = constructors.get(reference.protocol)
        if constructor is None:
            logger.debug(
                "unsupported CAS-engine protocol %r (%s)",
                reference.protocol,
                sorted(constructors),
            )
            continue

        try:
            engine = constructor(reference.uri, reference.data, client=client)
        except ValueError as exc:
            logger.warning(
                "failed to initialize %s CAS engine with %r: %s",
                reference.protocol,
                reference.data,
                exc,
            )
            continue

        engines.append(engine)

    return engines
