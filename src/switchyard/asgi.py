"""ASGI binding — translates ASGI scope/messages to switchyard types.

The only component that touches raw ASGI directly. Converts the scope
to a ``Request``, runs it through ``Router.handle()``, and maps the
outcome back onto ASGI ``send()``:

- response sent (or taken over by a callback) -> that response
- chain ran off the end -> 404, or 405 if another verb matches the path
- ``HTTPError`` reached the end -> its status, detail and headers
- anything else reached the end -> 500, logged with its traceback
"""

import logging
from collections.abc import Awaitable, Callable, MutableMapping
from typing import Any, TypeAlias

from switchyard.config import RouterConfig
from switchyard.errors import HTTPError, MethodNotAllowed, NotFound
from switchyard.http.request import Request
from switchyard.http.response import Response
from switchyard.routing.router import Router

Scope: TypeAlias = MutableMapping[str, Any]
Receive: TypeAlias = Callable[[], Awaitable[MutableMapping[str, Any]]]
Send: TypeAlias = Callable[[MutableMapping[str, Any]], Awaitable[None]]

logger = logging.getLogger("switchyard.server")


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


async def send_response(response: Response, send: Send) -> None:
    """Translate a Response into ASGI send() calls."""
    raw_headers: list[tuple[bytes, bytes]] = [
        (b"content-type", response.content_type.encode("latin-1")),
    ]
    for name, value in response.headers:
        raw_headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))

    body = response.body_bytes if _body_allowed(response.status) else b""
    raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))

    await send(
        {
            "type": "http.response.start",
            "status": response.status,
            "headers": raw_headers,
        }
    )
    await send(
        {
            "type": "http.response.body",
            "body": body,
        }
    )


def error_response(error: Any, request: Request, *, debug: bool) -> Response:
    """Map an error that reached the terminal continuation to a Response."""
    if isinstance(error, HTTPError):
        logger.debug("%d %s %s — %s", error.status, request.method, request.path, error.detail)
        response = Response(body=error.detail or f"Error {error.status}", status=error.status)
        response.headers.extend(error.headers)
        return response

    logger.error(
        "500 %s %s",
        request.method,
        request.path,
        exc_info=error if isinstance(error, BaseException) else None,
    )
    body = f"Internal Server Error: {error!r}" if debug else "Internal Server Error"
    return Response(body=body, status=500)


class RouterApp:
    """An ASGI 3 application serving a ``Router``.

    Usage::

        router = Router()
        router.get("/", lambda request, response, next: response.send("hi"))
        app = RouterApp(router)  # hand to any ASGI server
    """

    __slots__ = ("config", "router")

    def __init__(self, router: Router, config: RouterConfig | None = None) -> None:
        self.router = router
        self.config: RouterConfig = config or router.config

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return

        request = Request.from_asgi(scope)
        result = await self.router.handle(request)

        if not result.unhandled:
            await send_response(result.response, send)
            return

        error = result.error
        if error is None:
            allowed = self.router.table.allowed_verbs(request.path)
            if allowed and request.method.lower() not in allowed:
                error = MethodNotAllowed(allowed)
            else:
                error = NotFound()
        await send_response(error_response(error, request, debug=self.config.debug), send)
