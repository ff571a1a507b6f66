"""Route, RouteOptions and the path template they match.

A template is static text mixed with parameter tokens::

    /items/:id            -> one segment, captured as "id"
    /items/:id(\\d+)       -> custom pattern for "id"
    /archive/:year/:month? -> optional segment, dropped with its "/"
    /files/*              -> anything, captured under the key "0"
    /feed.:format?        -> "." works as a prefix too
"""

from __future__ import annotations

import re
from dataclasses import dataclass, fields, replace
from typing import Any, Literal
from urllib.parse import quote, unquote, urlencode

from switchyard.errors import BuildError, ConfigurationError

_TOKEN = re.compile(
    r"(?P<prefix>[/.])?"
    r"(?:"
    r":(?P<name>\w+)(?:\((?P<pattern>(?:\\.|[^\\()])+)\))?"
    r"|(?P<star>\*)"
    r")"
    r"(?P<optional>\?)?"
)


@dataclass(frozen=True, slots=True)
class RouteOptions:
    """Recognized per-route options.

    ``None`` means "not set": merging never lets an unset field
    overwrite a set one.
    """

    name: str | None = None
    case_sensitive: bool | None = None

    def merge(self, other: RouteOptions) -> RouteOptions:
        """Return these options with every field set in *other* applied on top."""
        changes = {
            f.name: getattr(other, f.name)
            for f in fields(other)
            if getattr(other, f.name) is not None
        }
        return replace(self, **changes) if changes else self


@dataclass(frozen=True, slots=True)
class PathParam:
    """A parameter token of a parsed template.

    Wildcards (``*``) get positional keys ``"0"``, ``"1"``... in order.
    """

    key: str
    prefix: str = ""
    pattern: str = r"[^/]+?"
    optional: bool = False
    wildcard: bool = False


def parse_template(path: str) -> list[str | PathParam]:
    """Split a route template into static text and parameter tokens.

    Examples::

        "/users"        -> ["/users"]
        "/users/:id"    -> ["/users", PathParam("id", prefix="/")]
        "/files/*"      -> ["/files", PathParam("0", prefix="/", pattern=".*", wildcard=True)]

    Raises ``ConfigurationError`` when a parameter name repeats.
    """
    tokens: list[str | PathParam] = []
    seen: set[str] = set()
    wildcards = 0
    position = 0

    for found in _TOKEN.finditer(path):
        if found.start() > position:
            tokens.append(path[position : found.start()])
        position = found.end()

        prefix = found.group("prefix") or ""
        optional = found.group("optional") is not None
        if found.group("star"):
            key = str(wildcards)
            wildcards += 1
            param = PathParam(key, prefix=prefix, pattern=".*", optional=optional, wildcard=True)
        else:
            key = found.group("name")
            default = r"[^/.]+?" if prefix == "." else r"[^/]+?"
            param = PathParam(
                key,
                prefix=prefix,
                pattern=found.group("pattern") or default,
                optional=optional,
            )

        if key in seen:
            msg = f"Duplicate parameter {key!r} in route {path!r}."
            raise ConfigurationError(msg)
        seen.add(key)
        tokens.append(param)

    if position < len(path):
        tokens.append(path[position:])
    return tokens


def compile_template(tokens: list[str | PathParam], *, case_sensitive: bool) -> re.Pattern[str]:
    """Compile parsed tokens into an anchored regex with one group per param.

    A single trailing slash on the matched path is tolerated.
    """
    parts: list[str] = []
    index = 0
    for token in tokens:
        if isinstance(token, str):
            parts.append(re.escape(token))
            continue
        # Named groups, so capturing groups inside custom patterns are ignored
        segment = f"{re.escape(token.prefix)}(?P<_p{index}>{token.pattern})"
        index += 1
        parts.append(f"(?:{segment})?" if token.optional else segment)

    body = "".join(parts)
    if not body.endswith("/"):
        body += "/?"
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile(f"^{body}$", flags)


class Route:
    """One path template plus its mutable options.

    Identity is the instance itself: the route table keeps exactly one
    Route per (verb, path) and merges later options into it with
    ``merge_options`` instead of replacing it.
    """

    __slots__ = ("_regex", "options", "path", "tokens")

    def __init__(self, path: str, options: RouteOptions | None = None) -> None:
        self.path = path
        self.options = options or RouteOptions()
        self.tokens = parse_template(path)
        self._regex = compile_template(self.tokens, case_sensitive=bool(self.options.case_sensitive))

    def __repr__(self) -> str:
        return f"Route({self.path!r}, name={self.name!r})"

    @property
    def name(self) -> str | None:
        return self.options.name

    @property
    def case_sensitive(self) -> bool:
        return bool(self.options.case_sensitive)

    @property
    def keys(self) -> tuple[str, ...]:
        """Parameter keys in template order."""
        return tuple(t.key for t in self.tokens if isinstance(t, PathParam))

    def merge_options(self, options: RouteOptions) -> None:
        """Merge *options* in place, recompiling if case sensitivity changed."""
        merged = self.options.merge(options)
        if merged.case_sensitive != self.options.case_sensitive:
            self._regex = compile_template(self.tokens, case_sensitive=bool(merged.case_sensitive))
        self.options = merged

    def match(self, path: str) -> dict[str, str] | Literal[True] | None:
        """Match a request path against the template.

        Returns ``None`` on no match, ``True`` when a template without
        parameters matches, otherwise the decoded parameters in template
        order. An optional parameter that is absent is left out.
        """
        found = self._regex.match(path)
        if found is None:
            return None

        keys = self.keys
        if not keys:
            return True

        params: dict[str, str] = {}
        for index, key in enumerate(keys):
            value = found.group(f"_p{index}")
            if value is not None:
                params[key] = unquote(value)
        return params

    def generate(self, params: dict[str, Any] | None = None) -> str:
        """Build a URL from *params*; leftovers become the query string.

        Raises ``BuildError`` when a required parameter is missing or empty.
        """
        remaining = dict(params or {})
        parts: list[str] = []
        for token in self.tokens:
            if isinstance(token, str):
                parts.append(token)
                continue
            value = remaining.pop(token.key, None)
            if value is None or value == "":
                if token.optional:
                    continue
                msg = f"Missing parameter {token.key!r} to build {self.path!r}."
                raise BuildError(msg)
            safe = "/" if token.wildcard else ""
            parts.append(token.prefix + quote(str(value), safe=safe))

        url = "".join(parts) or "/"
        if remaining:
            url += "?" + urlencode(remaining, doseq=True)
        return url
