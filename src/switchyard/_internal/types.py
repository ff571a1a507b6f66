"""Shared type aliases used across switchyard modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Param callback — (request, response, next, value, name)
ParamCallback: TypeAlias = Callable[..., Any]

# Modifier — (name, callback) -> replacement callback or a falsy value
Modifier: TypeAlias = Callable[[str, Any], Any]

# Terminal continuation supplied by the host — done(error_or_None)
Done: TypeAlias = Callable[[Any], Any]

# Host hook that runs an async function soon, e.g. anyio TaskGroup.start_soon
Spawn: TypeAlias = Callable[..., Any]
