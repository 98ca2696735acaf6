# -*- coding: utf-8 -*-
"""Map digests to locations with URI Templates, and locations back to digests.

Forward expansion follows RFC 6570 for the variables ``algorithm``,
``encoded`` and ``digest`` and then resolves the result against a base
location with RFC 3986 reference resolution. The reverse direction can't be
derived from a template in general, so it is delegated to a caller-supplied
extractor.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Union
from urllib.parse import quote

from .digest import Algorithm, Digest
from .errors import (
    MalformedExtractorError,
    MalformedTemplateError,
    NoMatchError,
    TemplateExpansionError,
)

VARIABLES = frozenset({"algorithm", "encoded", "digest"})

_UNRESERVED = "-._~"
_RESERVED = ":/?#[]@!$&'()*+,;="
_PCHAR = "!$&'()*+,;=:@" + _UNRESERVED

# RFC 3986, appendix B
_URI = re.compile(r"^(?:([^:/?#]+):)?(?://([^/?#]*))?([^?#]*)(?:\?([^#]*))?(?:#(.*))?$")
_PCT = re.compile(r"%([0-9A-Fa-f]{2})")
_VARSPEC = re.compile(r"^([A-Za-z0-9_.]+)(?::([1-9][0-9]{0,3})|(\*))?$")

# first, separator, named, if-empty, allow reserved
_OPERATORS = {
    "": ("", ",", False, "", False),
    "+": ("", ",", False, "", True),
    "#": ("#", ",", False, "", True),
    ".": (".", ".", False, "", False),
    "/": ("/", "/", False, "", False),
    ";": (";", ";", True, "", False),
    "?": ("?", "&", True, "=", False),
    "&": ("&", "&", True, "=", False),
}

WILDCARD = "*"

Extractor = Union[Callable[[str], Optional[Mapping[str, str]]], "re.Pattern[str]"]


@dataclass(frozen=True)
class _VarSpec:
    name: str
    prefix: int | None = None


@dataclass(frozen=True)
class _Expression:
    operator: str
    varspecs: tuple[_VarSpec, ...]


class _Glob(str):
    """A value substituted verbatim, ignoring prefix modifiers."""


def _parse(template: str) -> list[str | _Expression]:
    parts: list[str | _Expression] = []
    pos = 0
    while pos < len(template):
        start = template.find("{", pos)
        close = template.find("}", pos)
        if close != -1 and (start == -1 or close < start):
            raise MalformedTemplateError(
                f"malformed template {template!r}: unbalanced '}}' at {close}"
            )
        if start == -1:
            parts.append(template[pos:])
            break
        if start > pos:
            parts.append(template[pos:start])
        end = template.find("}", start)
        if end == -1:
            raise MalformedTemplateError(
                f"malformed template {template!r}: unterminated expression at {start}"
            )
        parts.append(_parse_expression(template, template[start + 1 : end]))
        pos = end + 1
    return parts


def _parse_expression(template: str, body: str) -> _Expression:
    if "{" in body:
        raise MalformedTemplateError(f"malformed template {template!r}: nested '{{'")

    operator = body[:1] if body[:1] in _OPERATORS and body[:1] else ""
    names = body[len(operator) :]
    if not names:
        raise MalformedTemplateError(
            f"malformed template {template!r}: empty expression {{{body}}}"
        )

    varspecs = []
    for spec in names.split(","):
        match = _VARSPEC.match(spec)
        if match is None:
            raise MalformedTemplateError(
                f"malformed template {template!r}: invalid variable {spec!r}"
            )
        name, prefix, _ = match.groups()
        if name not in VARIABLES:
            raise MalformedTemplateError(
                f"malformed template {template!r}: unknown variable {name!r}"
            )
        varspecs.append(_VarSpec(name, int(prefix) if prefix else None))

    return _Expression(operator, tuple(varspecs))


def _encode_literal(literal: str) -> str:
    return quote(literal, safe=_RESERVED + "%")


def _remove_dot_segments(path: str) -> str:
    # RFC 3986, section 5.2.4
    output: list[str] = []
    while path:
        if path.startswith("../"):
            path = path[3:]
        elif path.startswith("./"):
            path = path[2:]
        elif path.startswith("/./"):
            path = path[2:]
        elif path == "/.":
            path = "/"
        elif path.startswith("/../"):
            path = path[3:]
            if output:
                output.pop()
        elif path == "/..":
            path = "/"
            if output:
                output.pop()
        elif path in (".", ".."):
            path = ""
        else:
            index = path.find("/", 1)
            if index == -1:
                index = len(path)
            output.append(path[:index])
            path = path[index:]
    return "".join(output)


def _compose(scheme, authority, path, query, fragment) -> str:
    # RFC 3986, section 5.3
    result = ""
    if scheme is not None:
        result += scheme + ":"
    if authority is not None:
        result += "//" + authority
    result += path
    if query is not None:
        result += "?" + query
    if fragment is not None:
        result += "#" + fragment
    return result


def _normalize_path(path: str) -> str:
    def decode(match: re.Match) -> str:
        char = chr(int(match.group(1), 16))
        if char.isalnum() and char.isascii() or char in _PCHAR:
            return char
        return match.group(0).upper()

    return _PCT.sub(decode, path)


def resolve(reference: str, base: str | None) -> str:
    """Resolve `reference` against `base` (RFC 3986, section 5.2).

    Raises:
        TemplateExpansionError: If there is no base and `reference` is not an
            absolute URI, or if `base` itself is not absolute.
    """
    match = _URI.match(reference)
    assert match is not None  # the appendix B expression matches any string
    scheme, authority, path, query, fragment = match.groups()

    if scheme is not None:
        target = (scheme, authority, _remove_dot_segments(path), query)
    elif base is None:
        raise TemplateExpansionError(
            f"cannot resolve relative reference {reference!r} without a base"
        )
    else:
        base_match = _URI.match(base)
        assert base_match is not None
        b_scheme, b_authority, b_path, b_query, _ = base_match.groups()
        if b_scheme is None:
            raise TemplateExpansionError(f"base {base!r} is not an absolute URI")

        if authority is not None:
            target = (b_scheme, authority, _remove_dot_segments(path), query)
        elif path == "":
            target = (b_scheme, b_authority, b_path, b_query if query is None else query)
        elif path.startswith("/"):
            target = (b_scheme, b_authority, _remove_dot_segments(path), query)
        else:
            if b_authority is not None and b_path == "":
                merged = "/" + path
            else:
                merged = b_path[: b_path.rfind("/") + 1] + path
            target = (b_scheme, b_authority, _remove_dot_segments(merged), query)

    scheme, authority, path, query = target
    return _compose(scheme, authority, _normalize_path(path), query, fragment)


class RegexDigestExtractor:
    """Recover digest components from a path with a regular expression.

    The pattern must define the named groups ``algorithm`` and ``encoded``.
    Matching uses `re.search` semantics.

    Raises:
        MalformedExtractorError: If `pattern` doesn't compile or lacks either
            named group.
    """

    def __init__(self, pattern: str | re.Pattern[str]):
        try:
            self._regex = re.compile(pattern)
        except re.error as exc:
            raise MalformedExtractorError(
                f"invalid extractor pattern {pattern!r}: {exc}"
            ) from exc

        for group in ("algorithm", "encoded"):
            if group not in self._regex.groupindex:
                raise MalformedExtractorError(
                    f"no {group!r} capturing group in {self._regex.pattern!r}"
                )

    @property
    def pattern(self) -> str:
        return self._regex.pattern

    def __call__(self, path: str) -> Mapping[str, str] | None:
        match = self._regex.search(path)
        if match is None:
            return None
        return match.groupdict()

    def __repr__(self) -> str:
        return f"RegexDigestExtractor({self._regex.pattern!r})"


class AddressTemplate:
    """Compiled URI Template mapping a `Digest` to a location.

    Parameters:
        template: RFC 6570 template using the variables ``{algorithm}``,
            ``{encoded}``, ``{encoded:N}`` and ``{digest}``.

    Raises:
        MalformedTemplateError: If `template` is not a valid template or uses
            unknown variables.
    """

    def __init__(self, template: str):
        if not isinstance(template, str):
            raise MalformedTemplateError(f"template must be a string, not {template!r}")
        self._template = template
        self._parts = _parse(template)

    @property
    def template(self) -> str:
        return self._template

    @property
    def variables(self) -> frozenset[str]:
        return frozenset(
            spec.name
            for part in self._parts
            if isinstance(part, _Expression)
            for spec in part.varspecs
        )

    def render(self, values: Mapping[str, str]) -> str:
        """Expand the template with raw `values`, without resolving it."""
        result = []
        for part in self._parts:
            if isinstance(part, str):
                result.append(_encode_literal(part))
            else:
                result.append(self._render_expression(part, values))
        return "".join(result)

    def _render_expression(self, expression: _Expression, values: Mapping[str, str]) -> str:
        first, sep, named, ifemp, allow_reserved = _OPERATORS[expression.operator]
        safe = _RESERVED if allow_reserved else ""

        items = []
        for spec in expression.varspecs:
            value = values[spec.name]
            if isinstance(value, _Glob):
                encoded = str(value)
            else:
                if spec.prefix is not None:
                    if spec.prefix > len(value):
                        raise TemplateExpansionError(
                            f"prefix length {spec.prefix} exceeds {spec.name} "
                            f"value {value!r}"
                        )
                    value = value[: spec.prefix]
                encoded = quote(value, safe=safe)

            if named:
                items.append(f"{spec.name}={encoded}" if encoded else spec.name + ifemp)
            else:
                items.append(encoded)

        return first + sep.join(items)

    def expand(self, digest: Digest, base: str | None = None) -> str:
        """Return the location of `digest`, resolved against `base`."""
        return resolve(
            self.render(
                {
                    "algorithm": digest.algorithm.value,
                    "encoded": digest.encoded,
                    "digest": digest.canonical_string(),
                }
            ),
            base,
        )

    def glob(self, algorithm: Algorithm | None = None, base: str | None = None) -> str:
        """Return a location pattern matching every digest (of `algorithm`)."""
        algorithm_value = _Glob(WILDCARD) if algorithm is None else algorithm.value
        return resolve(
            self.render(
                {
                    "algorithm": algorithm_value,
                    "encoded": _Glob(WILDCARD),
                    "digest": _Glob(f"{quote(algorithm_value, safe='*')}%3A{WILDCARD}"),
                }
            ),
            base,
        )

    @staticmethod
    def match(location: str, extractor: Extractor) -> Digest:
        """Recover the digest stored at `location` using `extractor`.

        Raises:
            NoMatchError: If `extractor` doesn't match `location`.
            MalformedExtractorError: If the match lacks ``algorithm`` or
                ``encoded``.
            MalformedDigestError: If the components aren't a valid digest.
        """
        if isinstance(extractor, re.Pattern):
            extractor = RegexDigestExtractor(extractor)

        components = extractor(location)
        if components is None:
            raise NoMatchError(f"{location!r} does not match {extractor!r}")

        for group in ("algorithm", "encoded"):
            if components.get(group) is None:
                raise MalformedExtractorError(f"no {group!r} component from {extractor!r}")

        return Digest.parse(f"{components['algorithm']}:{components['encoded']}")

    def __repr__(self) -> str:
        return f"AddressTemplate({self._template!r})"
