"""Tests for Router.handle — the anyio-driven async dispatch driver."""

from typing import Any

import anyio

from switchyard.dispatch import SKIP_ROUTE, error_handler
from switchyard.http.request import Request
from switchyard.http.response import Response
from switchyard.routing.router import Router


class TestHandle:
    async def test_async_handler_sends(self) -> None:
        router = Router()

        @router.get("/items/:id")
        async def show(request, response, next):
            await anyio.sleep(0)
            response.send(f"item {request.params['id']}")

        result = await router.handle(Request("GET", "/items/5"))

        assert result.response.text == "item 5"
        assert result.unhandled is False
        assert result.error is None

    async def test_async_handler_continues_chain(self) -> None:
        router = Router()
        calls: list[str] = []

        async def first(request, response, next):
            await anyio.sleep(0)
            calls.append("first")
            next()

        def second(request, response, next):
            calls.append("second")
            response.send("ok")

        router.get("/x", first, second)

        result = await router.handle(Request("GET", "/x"))

        assert calls == ["first", "second"]
        assert result.response.text == "ok"

    async def test_async_param_callback(self) -> None:
        router = Router()

        @router.param("id")
        async def load(request, response, next, value, name):
            await anyio.sleep(0)
            request.state["item"] = {"id": int(value)}
            next()

        router.get("/items/:id", lambda request, response, next: response.json(request.state["item"]))

        result = await router.handle(Request("GET", "/items/7"))

        assert result.response.text == '{"id": 7}'
        assert result.response.content_type == "application/json"

    async def test_async_exception_becomes_error(self) -> None:
        router = Router()
        seen: list[Any] = []

        async def explode(request, response, next):
            await anyio.sleep(0)
            raise LookupError("gone")

        @error_handler
        def on_error(error, request, response, next):
            seen.append(error)
            response.send("recovered", status=404)

        router.get("/x", explode, on_error)

        result = await router.handle(Request("GET", "/x"))

        assert isinstance(seen[0], LookupError)
        assert result.response.status == 404
        assert result.response.text == "recovered"

    async def test_async_skip_route(self) -> None:
        router = Router()
        router.get("/items/*", lambda request, response, next: response.send("wildcard"))

        @router.get("/items/:id")
        async def exact(request, response, next):
            await anyio.sleep(0)
            next(SKIP_ROUTE)

        result = await router.handle(Request("GET", "/items/1"))

        assert result.response.text == "wildcard"

    async def test_unhandled(self) -> None:
        router = Router()
        router.get("/x", lambda request, response, next: next())

        result = await router.handle(Request("GET", "/y"))

        assert result.unhandled is True
        assert result.error is None
        assert result.response.finished is False

    async def test_error_reaches_result(self) -> None:
        router = Router()
        failure = ValueError("bad")
        router.get("/x", lambda request, response, next: next(failure))

        result = await router.handle(Request("GET", "/x"))

        assert result.unhandled is True
        assert result.error is failure

    async def test_stalled_chain_returns(self) -> None:
        router = Router()

        def h(request, response, next):
            response.body = request.params["id"]

        router.get("/items/:id", h)

        result = await router.handle(Request("GET", "/items/42"))

        assert result.unhandled is False
        assert result.response.body == "42"
        assert result.response.finished is False

    async def test_uses_given_response(self) -> None:
        router = Router()
        router.get("/x", lambda request, response, next: response.send("hi"))
        response = Response(status=201)

        result = await router.handle(Request("GET", "/x"), response)

        assert result.response is response
        assert response.status == 201
