# -*- coding: utf-8 -*-
"""casengine provides content-addressable storage engines. Blobs are stored,
retrieved and listed by a cryptographic digest of their content instead of by
name.

Where a blob lives is described by a URI Template such as
``blobs/{algorithm}/{encoded:2}/{encoded}``, so the same digest can be looked
up in a local directory (`DirectoryEngine`) or fetched over the network
(`TemplateEngine`).

Engines don't verify the content they return. Callers that need integrity
should read through `verified_read` or a `DigestVerifier`.
"""

from .digest import Algorithm, Digest, DigestVerifier, verified_read
from .directory import DirectoryEngine
from .engine import (
    AlgorithmLister,
    BlobStream,
    Closer,
    Deleter,
    DigestLister,
    Engine,
    ReadCloser,
    Reader,
    Writer,
)
from .errors import BlobNotFoundError, CasError, TransportError
from .remote import TemplateEngine
from .template import AddressTemplate, RegexDigestExtractor

__all__ = (
    "AddressTemplate",
    "Algorithm",
    "AlgorithmLister",
    "BlobNotFoundError",
    "BlobStream",
    "CasError",
    "Closer",
    "Deleter",
    "Digest",
    "DigestLister",
    "DigestVerifier",
    "DirectoryEngine",
    "Engine",
    "ReadCloser",
    "Reader",
    "RegexDigestExtractor",
    "TemplateEngine",
    "TransportError",
    "Writer",
    "verified_read",
)
