"""The request seen by route and param callbacks.

Unlike a transport-level request, this object is mutable: the dispatch
engine records the matched route and its parameters on it, and callbacks
may stash per-request values in ``state``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl

if TYPE_CHECKING:
    from switchyard.routing.route import Route


@dataclass(slots=True)
class Request:
    """A ``{method, path}`` request plus dispatch bookkeeping.

    Usage::

        request = Request("GET", "/items/42")
        router.dispatch(request, Response(), done)
        request.params  # {"id": "42"}
    """

    method: str
    path: str
    query_string: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    # Set by the dispatch engine on every successful match
    route: Route | None = None
    params: dict[str, str] = field(default_factory=dict)

    # Scratch space for callbacks (e.g. a param loader storing a record)
    state: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_asgi(cls, scope: Mapping[str, Any]) -> Request:
        """Build a Request from a raw ASGI HTTP scope."""
        raw_query: bytes = scope.get("query_string", b"")
        return cls(
            method=scope["method"],
            path=scope["path"],
            query_string=raw_query.decode("latin-1"),
            headers=tuple(
                (name.decode("latin-1").lower(), value.decode("latin-1"))
                for name, value in scope.get("headers", ())
            ),
        )

    def header(self, name: str, default: str | None = None) -> str | None:
        """Return the first header value for *name* (case-insensitive)."""
        key = name.lower()
        for header_name, value in self.headers:
            if header_name.lower() == key:
                return value
        return default

    @property
    def query(self) -> dict[str, str]:
        """Query string parameters; the last value wins for repeated keys."""
        return dict(parse_qsl(self.query_string, keep_blank_values=True))
