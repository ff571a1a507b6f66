"""Router — registration, URL building and dispatch behind one object.

Mutable during setup (routes, param callbacks, modifiers). Sealed when
``seal()`` is called or, by default, on the first dispatch; after that
every registration raises ``RouterSealedError``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import anyio

from switchyard._internal.types import Done, Spawn
from switchyard.config import RouterConfig
from switchyard.dispatch import Dispatch, Next
from switchyard.errors import RouterSealedError
from switchyard.http.request import Request
from switchyard.http.response import Response
from switchyard.routing.params import ParamRegistry
from switchyard.routing.route import Route, RouteOptions
from switchyard.routing.table import RouteMatch, RouteTable

logger = logging.getLogger("switchyard.routing")

VERBS = ("get", "post", "put", "patch", "delete", "head", "options")


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """What ``Router.handle()`` observed.

    ``unhandled`` is True when the chain ran off the end of every matching
    route without the response being sent. ``error`` is whatever failure
    reached the terminal continuation.
    """

    response: Response
    error: Any = None
    unhandled: bool = False


class Router:
    """Routes requests to ordered chains of callbacks.

    Usage::

        router = Router()

        @router.get("/items/:id", name="item")
        def show(request, response, next):
            response.send(request.params["id"])

        router.build("item", {"id": 42})  # "/items/42"

    Thread safety:
        Registration is single-threaded setup work. Sealing uses a Lock +
        double-check so concurrent first dispatches seal exactly once.
        Once sealed, the route table and param registry are only read.
    """

    __slots__ = ("_params", "_seal_lock", "_sealed", "_table", "config")

    def __init__(self, config: RouterConfig | None = None) -> None:
        self.config: RouterConfig = config or RouterConfig()
        self._table = RouteTable()
        self._params = ParamRegistry()
        self._sealed = False
        self._seal_lock = threading.Lock()

    def __repr__(self) -> str:
        state = "sealed" if self._sealed else "open"
        return f"<Router verbs={list(self._table.verbs)} {state}>"

    # -- Registration --

    def add(
        self,
        verb: str,
        path: str,
        callbacks: Any,
        options: RouteOptions | None = None,
    ) -> Route:
        """Register *callbacks* for (verb, path) and return the Route.

        *callbacks* may be a callable or any nesting of lists/tuples of
        them. Registering the same (verb, path) again merges *options*
        into the existing Route and replaces its callback chain.
        """
        self._check_open()
        options = options or RouteOptions()
        if options.case_sensitive is None:
            options = options.merge(RouteOptions(case_sensitive=self.config.case_sensitive))
        return self._table.register(verb, path, callbacks, options)

    def _verb(
        self,
        verbs: tuple[str, ...],
        path: str,
        callbacks: tuple[Any, ...],
        name: str | None,
        case_sensitive: bool | None,
    ) -> Any:
        options = RouteOptions(name=name, case_sensitive=case_sensitive)
        if callbacks:
            for verb in verbs:
                self.add(verb, path, callbacks, options)
            return self

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            for verb in verbs:
                self.add(verb, path, fn, options)
            return fn

        return decorator

    def get(
        self,
        path: str,
        *callbacks: Any,
        name: str | None = None,
        case_sensitive: bool | None = None,
    ) -> Any:
        """Register a GET route.

        With callbacks, returns the router for chaining. Without, returns
        a decorator::

            @router.get("/items/:id", name="item")
            def show(request, response, next): ...
        """
        return self._verb(("get",), path, callbacks, name, case_sensitive)

    def post(self, path: str, *callbacks: Any, name: str | None = None, case_sensitive: bool | None = None) -> Any:
        return self._verb(("post",), path, callbacks, name, case_sensitive)

    def put(self, path: str, *callbacks: Any, name: str | None = None, case_sensitive: bool | None = None) -> Any:
        return self._verb(("put",), path, callbacks, name, case_sensitive)

    def patch(self, path: str, *callbacks: Any, name: str | None = None, case_sensitive: bool | None = None) -> Any:
        return self._verb(("patch",), path, callbacks, name, case_sensitive)

    def delete(self, path: str, *callbacks: Any, name: str | None = None, case_sensitive: bool | None = None) -> Any:
        return self._verb(("delete",), path, callbacks, name, case_sensitive)

    def head(self, path: str, *callbacks: Any, name: str | None = None, case_sensitive: bool | None = None) -> Any:
        return self._verb(("head",), path, callbacks, name, case_sensitive)

    def options(self, path: str, *callbacks: Any, name: str | None = None, case_sensitive: bool | None = None) -> Any:
        return self._verb(("options",), path, callbacks, name, case_sensitive)

    def all(self, path: str, *callbacks: Any, name: str | None = None, case_sensitive: bool | None = None) -> Any:
        """Register the same chain for every verb in ``VERBS``."""
        return self._verb(VERBS, path, callbacks, name, case_sensitive)

    def route(
        self,
        path: str,
        *,
        name: str | None = None,
        case_sensitive: bool | None = None,
        **verbs: Any,
    ) -> Router:
        """Register several verbs for one path at once::

            router.route("/items/:id", name="item", get=show, delete=[auth, destroy])
        """
        options = RouteOptions(name=name, case_sensitive=case_sensitive)
        for verb, callbacks in verbs.items():
            self.add(verb, path, callbacks, options)
        return self

    def param(self, name: str | Callable[..., Any], callback: Any = None) -> Any:
        """Register a param callback, or a modifier when *name* is callable.

        Returns the router for chaining, or a decorator when *callback* is
        omitted. Raises ``ConfigurationError`` if the callback is still not
        callable after the modifiers ran.
        """
        self._check_open()
        if callable(name):
            self._params.add_modifier(name)
            return self

        if callback is None:

            def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
                self.param(name, fn)
                return fn

            return decorator

        self._params.add(name, callback)
        return self

    # -- Sealing --

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> Router:
        """Freeze the route table and param registry."""
        if self._sealed:
            return self
        with self._seal_lock:
            if not self._sealed:
                self._sealed = True
                logger.debug(
                    "router sealed (%d routes)",
                    sum(len(self._table.routes(verb)) for verb in self._table.verbs),
                )
        return self

    def _check_open(self) -> None:
        if self._sealed:
            msg = "Cannot register routes or param callbacks after the router is sealed."
            raise RouterSealedError(msg)

    # -- Lookup --

    @property
    def table(self) -> RouteTable:
        return self._table

    @property
    def params(self) -> ParamRegistry:
        return self._params

    def match(self, request: Request) -> RouteMatch | None:
        """Find the next matching route after ``request.route``, if any."""
        return self._table.match(request, request.route)

    def build(self, name: str, params: dict[str, Any] | None = None, verb: str | None = None) -> str:
        """Build a URL for a named route.

        Raises ``NoSuchRouteError`` for an unknown name and ``BuildError``
        when a required parameter is missing.
        """
        return self._table.build(name, params, verb)

    # -- Dispatch --

    def dispatch(
        self,
        request: Request,
        response: Response,
        done: Done,
        *,
        spawn: Spawn | None = None,
    ) -> Dispatch:
        """Run the request through the router.

        *done* is called exactly once, with the outstanding error or None,
        when no further route matches. It is never called if a callback
        takes over the request by not calling ``next``.

        *spawn* runs awaitables returned by async callbacks, e.g. an anyio
        ``TaskGroup.start_soon``. Use ``handle()`` to get one set up.
        """
        if self.config.seal_on_dispatch:
            self.seal()
        return Dispatch(self._table, self._params, request, response, done, spawn=spawn).start()

    async def handle(self, request: Request, response: Response | None = None) -> DispatchResult:
        """Dispatch inside an anyio task group and wait for the outcome.

        Returns once the response is sent, the terminal continuation runs,
        or the chain stops with nothing left to wait on (a callback that
        neither sent the response nor called ``next``).
        """
        response = response if response is not None else Response()
        settled = anyio.Event()
        terminal: list[Any] = []
        running = 0

        def done(error: Any = None) -> None:
            terminal.append(error)
            settled.set()

        response.on_finish(lambda _response: settled.set())

        async with anyio.create_task_group() as tg:

            def spawn(fn: Callable[..., Any], *args: Any) -> None:
                nonlocal running
                running += 1

                async def run() -> None:
                    nonlocal running
                    try:
                        await fn(*args)
                    finally:
                        running -= 1
                        if running == 0 and dispatch.suspended:
                            settled.set()

                tg.start_soon(run)

            dispatch = self.dispatch(request, response, done, spawn=spawn)
            if running == 0 and dispatch.suspended:
                settled.set()
            await settled.wait()

        return DispatchResult(
            response=response,
            error=terminal[0] if terminal else None,
            unhandled=bool(terminal) and not response.finished,
        )

    def __call__(self, request: Request, response: Response, next: Next) -> None:
        """Dispatch as a callback of another router.

        The parent's ``request.route`` and ``request.params`` are restored
        before the parent resumes.
        """
        route, params = request.route, request.params

        def resume(error: Any = None) -> None:
            request.route, request.params = route, params
            next(error)

        self.dispatch(request, response, resume, spawn=getattr(next, "spawn", None))
