"""Dispatch engine — param callbacks first, then route handlers.

One ``Dispatch`` object carries a request through four phases::

    MATCH_ROUTE -> PARAM_PHASE -> HANDLER_PHASE -> TERMINAL
         ^              |               |
         +--------------+---------------+   (skip-route, or handlers exhausted)

Every step hands the callback a single-use ``Next`` continuation. The
callback resolves its step by calling ``next()`` (ok), ``next(error)``
(failure) or ``next(SKIP_ROUTE)`` (treat this route as unmatched). A
continuation called while its callback is still on the stack only
records the outcome; the driver loop in ``_run`` then advances. A
continuation called later, after async work, re-enters the loop. Chain
length therefore never grows the Python stack.

Callbacks are tagged rather than introspected: ``Handler`` entries run
while no failure is outstanding, ``ErrorHandler`` entries only while one
is.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, TypeAlias

from switchyard._internal.types import Done, Spawn
from switchyard.errors import ConfigurationError, ContinuationError

if TYPE_CHECKING:
    from switchyard.http.request import Request
    from switchyard.http.response import Response
    from switchyard.routing.params import ParamRegistry
    from switchyard.routing.route import Route
    from switchyard.routing.table import RouteMatch, RouteTable

logger = logging.getLogger("switchyard.dispatch")


# -- Step results --


class Signal(Enum):
    OK = auto()
    SKIP_ROUTE = auto()
    FAILURE = auto()


@dataclass(frozen=True, slots=True)
class Outcome:
    """The result of one dispatch step."""

    signal: Signal
    error: Any = None

    @classmethod
    def ok(cls) -> Outcome:
        return OK

    @classmethod
    def skip_route(cls) -> Outcome:
        return SKIP_ROUTE

    @classmethod
    def failure(cls, error: Any) -> Outcome:
        return cls(Signal.FAILURE, error)

    @property
    def is_ok(self) -> bool:
        return self.signal is Signal.OK

    @property
    def is_skip_route(self) -> bool:
        return self.signal is Signal.SKIP_ROUTE

    @property
    def is_failure(self) -> bool:
        return self.signal is Signal.FAILURE


OK = Outcome(Signal.OK)
SKIP_ROUTE = Outcome(Signal.SKIP_ROUTE)


# -- Tagged callbacks --


@dataclass(frozen=True, slots=True)
class Handler:
    """A route callback invoked as ``fn(request, response, next)``."""

    fn: Callable[..., Any]

    def __call__(self, request: Request, response: Response, next: Next) -> Any:
        return self.fn(request, response, next)


@dataclass(frozen=True, slots=True)
class ErrorHandler:
    """A route callback invoked as ``fn(error, request, response, next)``.

    Only runs while a failure is outstanding.
    """

    fn: Callable[..., Any]

    def __call__(self, error: Any, request: Request, response: Response, next: Next) -> Any:
        return self.fn(error, request, response, next)


Callback: TypeAlias = Handler | ErrorHandler


def error_handler(fn: Callable[..., Any]) -> ErrorHandler:
    """Tag *fn* as an error handler.

    Usage::

        @error_handler
        def on_error(error, request, response, next):
            response.send(str(error), status=500)

        router.get("/items/:id", show_item, on_error)
    """
    return ErrorHandler(fn)


def as_callback(entry: Any) -> Callback:
    """Tag a plain callable as a ``Handler``; tagged entries pass through.

    Raises ``ConfigurationError`` for anything that is not callable.
    """
    if isinstance(entry, (Handler, ErrorHandler)):
        return entry
    if not callable(entry):
        msg = f"Route callbacks must be callable, got {entry!r}."
        raise ConfigurationError(msg)
    return Handler(entry)


# -- Continuations --


class Next:
    """The continuation handed to one callback. Single use.

    ``next()`` resolves the step as ok, as does any falsy value.
    ``next(error)`` resolves it as a failure, and ``next(SKIP_ROUTE)`` or
    ``next.skip_route()`` as a skip-route. Any ``Outcome`` may also be
    passed directly.
    """

    __slots__ = ("_dispatch", "used")

    def __init__(self, dispatch: Dispatch) -> None:
        self._dispatch = dispatch
        self.used = False

    def __call__(self, error: Any = None) -> None:
        if self.used:
            msg = "next() was already called for this step."
            raise ContinuationError(msg)
        self.used = True

        if isinstance(error, Outcome):
            outcome = error
        elif not error:
            outcome = OK
        else:
            outcome = Outcome.failure(error)
        self._dispatch._resume(outcome)

    def skip_route(self) -> None:
        self(SKIP_ROUTE)

    @property
    def spawn(self) -> Spawn | None:
        """The host's spawn hook, for callbacks that start a nested dispatch."""
        return self._dispatch.spawn


# -- State machine --


class Phase(Enum):
    MATCH_ROUTE = auto()
    PARAM_PHASE = auto()
    HANDLER_PHASE = auto()
    TERMINAL = auto()


class Dispatch:
    """One request's trip through a router.

    Owns all per-request transient state: the phase, the route tried
    last, the parameter and handler cursors and the current outcome.
    The route table and param registry are only read.
    """

    __slots__ = (
        "_done",
        "_done_called",
        "_handler_index",
        "_name_index",
        "_names",
        "_param_callbacks",
        "_param_index",
        "_param_name",
        "_params",
        "_pending",
        "_prior",
        "_running",
        "_table",
        "match",
        "outcome",
        "phase",
        "request",
        "response",
        "spawn",
    )

    def __init__(
        self,
        table: RouteTable,
        params: ParamRegistry,
        request: Request,
        response: Response,
        done: Done,
        *,
        spawn: Spawn | None = None,
    ) -> None:
        self._table = table
        self._params = params
        self.request = request
        self.response = response
        self._done = done
        self.spawn = spawn

        self.phase = Phase.MATCH_ROUTE
        self.outcome: Outcome = OK
        self.match: RouteMatch | None = None
        self._prior: Route | None = None

        self._names: tuple[str, ...] = ()
        self._name_index = 0
        self._param_name: str | None = None
        self._param_callbacks: tuple[Callable[..., Any], ...] = ()
        self._param_index = 0
        self._handler_index = 0

        self._pending: Next | None = None
        self._running = False
        self._done_called = False

    def start(self) -> Dispatch:
        self._run()
        return self

    @property
    def suspended(self) -> bool:
        """True while waiting on a callback that has not called ``next`` yet."""
        return self._pending is not None

    # -- Driver --

    def _resume(self, outcome: Outcome) -> None:
        self._pending = None
        self.outcome = outcome
        if not self._running:
            self._run()

    def _run(self) -> None:
        self._running = True
        try:
            while self._pending is None and self.phase is not Phase.TERMINAL:
                if self.phase is Phase.MATCH_ROUTE:
                    self._match_route()
                elif self.phase is Phase.PARAM_PHASE:
                    self._param_step()
                else:
                    self._handler_step()
        finally:
            self._running = False

        if self.phase is Phase.TERMINAL and not self._done_called:
            self._done_called = True
            error = self.outcome.error if self.outcome.is_failure else None
            logger.debug(
                "%s %s reached the terminal continuation (error=%r)",
                self.request.method,
                self.request.path,
                error,
            )
            self._done(error)

    # -- Phases --

    def _match_route(self) -> None:
        match = self._table.match(self.request, self._prior)
        if match is None:
            self.phase = Phase.TERMINAL
            return

        if self.outcome.is_skip_route:
            self.outcome = OK

        self._prior = match.route
        self.match = match
        self.request.route = match.route
        self.request.params = dict(match.params)

        self._names = tuple(match.params)
        self._name_index = 0
        self._param_name = None
        self._param_callbacks = ()
        self._param_index = 0
        self._handler_index = 0
        self.phase = Phase.PARAM_PHASE

    def _param_step(self) -> None:
        if self.outcome.is_skip_route:
            self._skip_route()
            return
        if self.outcome.is_failure:
            self.phase = Phase.HANDLER_PHASE
            return

        if self._param_index < len(self._param_callbacks):
            callback = self._param_callbacks[self._param_index]
            self._param_index += 1
            name = self._param_name
            self._invoke(
                callback,
                (self.request, self.response),
                (self.request.params.get(name), name),
            )
            return

        if self._name_index < len(self._names):
            self._param_name = self._names[self._name_index]
            self._name_index += 1
            self._param_callbacks = self._params.get(self._param_name)
            self._param_index = 0
            return

        self.phase = Phase.HANDLER_PHASE

    def _handler_step(self) -> None:
        if self.outcome.is_skip_route:
            self._skip_route()
            return

        assert self.match is not None
        callbacks = self.match.callbacks
        if self._handler_index >= len(callbacks):
            # Fall through to the next matching route, carrying the outcome
            self.phase = Phase.MATCH_ROUTE
            return

        callback = callbacks[self._handler_index]
        self._handler_index += 1

        if self.outcome.is_failure:
            if isinstance(callback, ErrorHandler):
                self._invoke(callback, (self.outcome.error, self.request, self.response))
        elif not isinstance(callback, ErrorHandler):
            self._invoke(callback, (self.request, self.response))

    def _skip_route(self) -> None:
        logger.debug(
            "%s %s: skipping route %r",
            self.request.method,
            self.request.path,
            self._prior,
        )
        self.phase = Phase.MATCH_ROUTE

    # -- Invocation --

    def _invoke(
        self,
        callback: Callable[..., Any],
        leading: tuple[Any, ...],
        trailing: tuple[Any, ...] = (),
    ) -> None:
        token = Next(self)
        self._pending = token
        try:
            result = callback(*leading, token, *trailing)
        except Exception as exc:
            logger.debug("%r raised during dispatch", callback, exc_info=True)
            self._settle(token, Outcome.failure(exc))
            return

        if inspect.isawaitable(result):
            if self.spawn is None:
                if inspect.iscoroutine(result):
                    result.close()
                msg = (
                    f"{callback!r} returned an awaitable; dispatch with "
                    "Router.handle() or pass spawn= to Router.dispatch()."
                )
                self._settle(token, Outcome.failure(ConfigurationError(msg)))
            else:
                self.spawn(self._drive, token, result)

    def _settle(self, token: Next, outcome: Outcome) -> None:
        """Resolve the step for *token* in place of its callback.

        Overrides an outcome the callback already recorded, as long as the
        driver has not advanced past it yet.
        """
        token.used = True
        self._pending = None
        self.outcome = outcome

    async def _drive(self, token: Next, awaitable: Awaitable[Any]) -> None:
        try:
            await awaitable
        except Exception as exc:
            if token.used:
                logger.exception("callback failed after calling next()")
                return
            logger.debug("async callback raised during dispatch", exc_info=True)
            token(exc)
