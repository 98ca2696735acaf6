# -*- coding: utf-8 -*-
"""Exceptions raised by casengine.

Every class also derives from the builtin exception that describes the same
condition, so callers catching ``ValueError`` or ``FileNotFoundError`` keep
working.
"""

from __future__ import annotations


class CasError(Exception):
    """Base class for all casengine errors."""


class MalformedDigestError(CasError, ValueError):
    """A string does not parse as ``algorithm:encoded`` for a known algorithm."""


class MalformedTemplateError(CasError, ValueError):
    """A URI Template has invalid syntax or names an unknown variable."""


class TemplateExpansionError(CasError, ValueError):
    """A template could not be expanded into a usable location."""


class MalformedExtractorError(CasError, ValueError):
    """A digest extractor does not expose both ``algorithm`` and ``encoded``."""


class NoMatchError(CasError, ValueError):
    """A location does not match the digest extractor at all."""


class BlobNotFoundError(CasError, FileNotFoundError):
    """No content is stored for the requested digest."""


class TransportError(CasError, OSError):
    """A fetch failed or returned an unexpected status.

    Attributes:
        url: The requested location.
        status: The response status line, or `None` if no response arrived.
    """

    def __init__(self, message: str, url: str, status: str | None = None):
        super().__init__(message)
        self.url = url
        self.status = status

    def __str__(self) -> str:
        return str(self.args[0])


class EngineClosedError(CasError, RuntimeError):
    """An operation was attempted on a closed engine."""


class DigestMismatchError(CasError, ValueError):
    """Retrieved content does not hash to the requested digest."""


class ConfigError(CasError, ValueError):
    """Engine configuration is invalid."""


class ConfigNotMappingError(ConfigError):
    def __init__(self, config: object):
        super().__init__(f"CAS-template config is not a mapping: {config!r}")


class MissingUriError(ConfigError):
    def __init__(self, config: object):
        super().__init__(
            f"CAS-template config missing required 'uri' property: {config!r}"
        )


class UriNotStringError(ConfigError):
    def __init__(self, config: object):
        super().__init__(f"CAS-template config 'uri' is not a string: {config!r}")
