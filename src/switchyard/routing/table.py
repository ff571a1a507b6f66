"""Route table — the router's registration indices and matcher.

Routes for a verb are kept most-recently-registered-first, and matching
is first-match over that list. A retry resumes just past the route that
declined the request, so every route is tried at most once per dispatch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from switchyard.dispatch import Callback, as_callback
from switchyard.errors import NoSuchRouteError
from switchyard.routing.route import Route, RouteOptions

if TYPE_CHECKING:
    from switchyard.http.request import Request

logger = logging.getLogger("switchyard.routing")


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful match. ``params`` is never a bool."""

    route: Route
    callbacks: tuple[Callback, ...]
    params: dict[str, str]


def flatten(callbacks: Any) -> tuple[Callback, ...]:
    """Flatten arbitrarily nested lists/tuples of callbacks, in order."""
    flat: list[Callback] = []
    stack: list[Any] = [iter([callbacks])]
    while stack:
        for entry in stack[-1]:
            if isinstance(entry, (list, tuple)):
                stack.append(iter(entry))
                break
            flat.append(as_callback(entry))
        else:
            stack.pop()
    return tuple(flat)


class RouteTable:
    """Ordered per-verb route lists plus the lookups built alongside them.

    - ``routes(verb)``: routes for a verb, newest first
    - ``get(verb, path)``: the single Route for a (verb, path) pair
    - ``named(name)``: verb -> Route for a route name, in registration order
    - ``callbacks(verb, path)``: the current callback chain
    """

    __slots__ = ("_by_name", "_by_verb", "_by_verb_and_path", "_callbacks")

    def __init__(self) -> None:
        self._by_verb: dict[str, list[Route]] = {}
        self._by_verb_and_path: dict[tuple[str, str], Route] = {}
        self._by_name: dict[str, dict[str, Route]] = {}
        self._callbacks: dict[tuple[str, str], tuple[Callback, ...]] = {}

    def register(
        self,
        verb: str,
        path: str,
        callbacks: Any,
        options: RouteOptions,
    ) -> Route:
        """Add or update the route for (verb, path).

        *options* must already carry the effective case sensitivity. An
        existing route keeps its identity and has *options* merged in; its
        callback chain is replaced, never merged.
        """
        verb = verb.lower()
        chain = flatten(callbacks)
        key = (verb, path)

        route = self._by_verb_and_path.get(key)
        if route is None:
            route = Route(path, options)
            self._by_verb.setdefault(verb, []).insert(0, route)
            self._by_verb_and_path[key] = route
            logger.debug("route registered: %s %s", verb.upper(), path)
        else:
            previous = route.name
            route.merge_options(options)
            if previous is not None and previous != route.name:
                self._unname(previous, verb, route)
            logger.debug("route updated: %s %s", verb.upper(), path)

        if options.name is not None:
            self._by_name.setdefault(options.name, {})[verb] = route

        self._callbacks[key] = chain
        return route

    def _unname(self, name: str, verb: str, route: Route) -> None:
        by_verb = self._by_name.get(name)
        if by_verb is None or by_verb.get(verb) is not route:
            return
        del by_verb[verb]
        if not by_verb:
            del self._by_name[name]

    def match(self, request: Request, prior: Route | None = None) -> RouteMatch | None:
        """Find the first route after *prior* that matches the request.

        Starts from the top of the verb's list when *prior* is None or is
        not one of its routes.
        """
        verb = request.method.lower()
        routes = self._by_verb.get(verb)
        if not routes:
            return None

        offset = 0
        if prior is not None:
            for index, route in enumerate(routes):
                if route is prior:
                    offset = index + 1
                    break

        for route in routes[offset:]:
            outcome = route.match(request.path)
            if outcome is None or outcome is False:
                continue
            params = {} if outcome is True else dict(outcome)
            return RouteMatch(
                route=route,
                callbacks=self._callbacks[(verb, route.path)],
                params=params,
            )
        return None

    def build(self, name: str, params: dict[str, Any] | None = None, verb: str | None = None) -> str:
        """Generate a URL for the route registered under *name*.

        Without *verb*, the first verb registered for the name is used.
        Raises ``NoSuchRouteError`` for an unknown name or verb.
        """
        by_verb = self._by_name.get(name)
        if not by_verb:
            raise NoSuchRouteError(name)
        if verb is None:
            route = next(iter(by_verb.values()))
        else:
            route = by_verb.get(verb.lower())
            if route is None:
                raise NoSuchRouteError(name, verb)
        return route.generate(params)

    def allowed_verbs(self, path: str) -> frozenset[str]:
        """Verbs with at least one route whose template matches *path*."""
        return frozenset(
            verb
            for verb, routes in self._by_verb.items()
            if any(route.match(path) is not None for route in routes)
        )

    # -- Introspection --

    def routes(self, verb: str) -> tuple[Route, ...]:
        return tuple(self._by_verb.get(verb.lower(), ()))

    def get(self, verb: str, path: str) -> Route | None:
        return self._by_verb_and_path.get((verb.lower(), path))

    def named(self, name: str) -> dict[str, Route]:
        return dict(self._by_name.get(name, {}))

    def callbacks(self, verb: str, path: str) -> tuple[Callback, ...]:
        return self._callbacks.get((verb.lower(), path), ())

    @property
    def verbs(self) -> tuple[str, ...]:
        return tuple(self._by_verb)
