"""Parameter callbacks and the modifiers that rewrite them.

A param callback runs once per matched request for every route whose
template captures a parameter of that name, before any route handler::

    def load_user(request, response, next, value, name):
        request.state["user"] = users.get(value)
        next()

    router.param("user_id", load_user)

A modifier is registered by passing a callable as the name. It sees
every later registration and may swap the callback for another::

    def numeric_only(name, pattern):
        if isinstance(pattern, re.Pattern):
            def check(request, response, next, value, name):
                next() if pattern.fullmatch(value) else next(SKIP_ROUTE)
            return check
        return None

    router.param(numeric_only)
    router.param("id", re.compile(r"\\d+"))
"""

import logging
from typing import Any

from switchyard._internal.types import Modifier, ParamCallback
from switchyard.errors import ConfigurationError

logger = logging.getLogger("switchyard.routing")


class ParamRegistry:
    """Per-name ordered param callbacks plus the ordered modifier list."""

    __slots__ = ("_callbacks", "_modifiers")

    def __init__(self) -> None:
        self._callbacks: dict[str, list[ParamCallback]] = {}
        self._modifiers: list[Modifier] = []

    def add_modifier(self, modifier: Modifier) -> None:
        self._modifiers.append(modifier)

    def add(self, name: str, callback: Any) -> ParamCallback:
        """Run the modifiers over *callback* and store the result under *name*.

        Modifiers run in registration order. A truthy return replaces
        *callback* and is what the next modifier sees.
        Raises ``ConfigurationError`` if the final value is not callable.
        """
        for modifier in self._modifiers:
            replacement = modifier(name, callback)
            if replacement:
                callback = replacement

        if not callable(callback):
            msg = f"Invalid param callback for {name!r}, got {callback!r}."
            raise ConfigurationError(msg)

        self._callbacks.setdefault(name, []).append(callback)
        logger.debug("param callback registered for %r: %r", name, callback)
        return callback

    def get(self, name: str) -> tuple[ParamCallback, ...]:
        """Callbacks for *name* in registration order (empty if none)."""
        return tuple(self._callbacks.get(name, ()))

    @property
    def modifiers(self) -> tuple[Modifier, ...]:
        return tuple(self._modifiers)

    def __contains__(self, name: object) -> bool:
        return name in self._callbacks
