"""HTTP response filled in by route callbacks.

Callbacks mutate the response in place and call ``send()`` when it is
complete. Hosts register ``on_finish`` listeners to learn when to
stop waiting for the dispatch chain.
"""

from __future__ import annotations

import json as json_module
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from switchyard.errors import SwitchyardError


@dataclass(slots=True)
class Response:
    """A mutable HTTP response.

    A handler that produces output ends the chain by calling ``send()``
    instead of ``next()``::

        def show(request, response, next):
            response.send(f"item {request.params['id']}")
    """

    body: str | bytes = ""
    status: int = 200
    content_type: str = "text/plain; charset=utf-8"
    headers: list[tuple[str, str]] = field(default_factory=list)
    finished: bool = False
    _listeners: list[Callable[[Response], Any]] = field(
        default_factory=list, init=False, repr=False, compare=False
    )

    def set_header(self, name: str, value: str) -> None:
        """Replace every header called *name* with a single value."""
        lowered = name.lower()
        self.headers = [(n, v) for n, v in self.headers if n.lower() != lowered]
        self.headers.append((name, value))

    def send(
        self,
        body: str | bytes | None = None,
        *,
        status: int | None = None,
        content_type: str | None = None,
    ) -> None:
        """Finish the response and notify ``on_finish`` listeners.

        Raises ``SwitchyardError`` if the response was already sent.
        """
        if self.finished:
            msg = "Response already sent."
            raise SwitchyardError(msg)
        if body is not None:
            self.body = body
        if status is not None:
            self.status = status
        if content_type is not None:
            self.content_type = content_type
        self.finished = True
        for listener in self._listeners:
            listener(self)

    def json(self, data: Any, *, status: int | None = None) -> None:
        """Serialize *data* as JSON and send it."""
        self.send(
            json_module.dumps(data, default=str),
            status=status,
            content_type="application/json",
        )

    def on_finish(self, listener: Callable[[Response], Any]) -> None:
        """Call *listener* with this response once ``send()`` runs."""
        if self.finished:
            listener(self)
            return
        self._listeners.append(listener)

    @property
    def body_bytes(self) -> bytes:
        if isinstance(self.body, bytes):
            return self.body
        return self.body.encode("utf-8")

    @property
    def text(self) -> str:
        if isinstance(self.body, str):
            return self.body
        return self.body.decode("utf-8")
