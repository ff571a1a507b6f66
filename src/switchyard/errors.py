"""Switchyard exception hierarchy.

Shared across the route table, the dispatch engine and the ASGI binding
so every module raises and catches the same types.
"""

from dataclasses import dataclass


class SwitchyardError(Exception):
    """Base for all switchyard-specific errors."""


class ConfigurationError(SwitchyardError):
    """Raised when router configuration is invalid.

    Registration and URL building raise it synchronously; it is never
    retried by the dispatch engine.
    """


class RouterSealedError(ConfigurationError):
    """Raised when a route or param callback is registered after sealing."""


class NoSuchRouteError(ConfigurationError):
    """Raised by ``build()`` when no route carries the requested name."""

    def __init__(self, name: str, verb: str | None = None) -> None:
        self.name = name
        self.verb = verb
        if verb is None:
            super().__init__(f"No route found with the name: {name!r}")
        else:
            super().__init__(f"No {verb.upper()} route found with the name: {name!r}")


class BuildError(ConfigurationError):
    """Raised when a URL cannot be generated from the given parameters."""


class ContinuationError(SwitchyardError):
    """Raised when a ``next`` continuation is invoked more than once."""


@dataclass(frozen=True, slots=True)
class HTTPError(SwitchyardError):
    """An error that maps directly to an HTTP status code.

    Handlers pass it to ``next`` (or raise it); the ASGI binding turns an
    unrecovered one into a response with the same status.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """404 — no route handled the request."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """405 — the path is routed, but not for this verb.

    Includes an ``Allow`` header listing the valid methods.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(m.upper() for m in allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )
