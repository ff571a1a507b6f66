"""Tests for switchyard.routing.router — the Router facade."""

from typing import Any

import pytest

from switchyard.config import RouterConfig
from switchyard.dispatch import Handler
from switchyard.errors import BuildError, ConfigurationError, NoSuchRouteError, RouterSealedError
from switchyard.http.request import Request
from switchyard.http.response import Response
from switchyard.routing.route import RouteOptions
from switchyard.routing.router import VERBS, Router


def _handler(request, response, next):
    next()


def _other(request, response, next):
    next()


class TestRegistration:
    def test_add_returns_route(self) -> None:
        router = Router()
        route = router.add("GET", "/items/:id", [_handler], RouteOptions(name="item"))
        assert route.path == "/items/:id"
        assert route.name == "item"
        assert router.table.routes("get") == (route,)

    def test_add_same_path_twice(self) -> None:
        router = Router()
        first = router.add("get", "/x", [_handler])
        second = router.add("get", "/x", [_other], RouteOptions(name="x"))

        assert first is second
        assert router.table.routes("get") == (first,)
        assert first.name == "x"
        assert router.table.callbacks("get", "/x") == (Handler(_other),)

    def test_verb_shortcut_chains(self) -> None:
        router = Router()
        result = router.get("/a", _handler).post("/a", _handler)
        assert result is router
        assert router.table.verbs == ("get", "post")

    def test_verb_shortcut_decorator(self) -> None:
        router = Router()

        @router.put("/items/:id", name="update")
        def update(request, response, next):
            next()

        assert router.table.callbacks("put", "/items/:id") == (Handler(update),)
        assert router.table.get("put", "/items/:id").name == "update"

    def test_all_registers_every_verb(self) -> None:
        router = Router()
        router.all("/ping", _handler)
        assert set(router.table.verbs) == set(VERBS)

    def test_route_registers_several_verbs(self) -> None:
        router = Router()
        router.route("/items/:id", name="item", get=_handler, delete=[_handler, _other])

        assert router.table.callbacks("get", "/items/:id") == (Handler(_handler),)
        assert router.table.callbacks("delete", "/items/:id") == (Handler(_handler), Handler(_other))
        assert list(router.table.named("item")) == ["get", "delete"]


class TestCaseSensitivity:
    def test_router_default(self) -> None:
        router = Router(RouterConfig(case_sensitive=True))
        route = router.add("get", "/About", [_handler])
        assert route.case_sensitive is True

    def test_explicit_option_wins(self) -> None:
        router = Router(RouterConfig(case_sensitive=True))
        route = router.get("/About", _handler, case_sensitive=False).table.get("get", "/About")
        assert route.case_sensitive is False
        assert route.match("/about") is True

    def test_reregistration_reapplies_default(self) -> None:
        router = Router()
        route = router.add("get", "/About", [_handler], RouteOptions(case_sensitive=True))
        router.add("get", "/About", [_handler])
        assert route.case_sensitive is False


class TestParam:
    def test_register(self) -> None:
        router = Router()

        def load(request, response, next, value, name):
            next()

        assert router.param("id", load) is router
        assert router.params.get("id") == (load,)

    def test_decorator(self) -> None:
        router = Router()

        @router.param("id")
        def load(request, response, next, value, name):
            next()

        assert router.params.get("id") == (load,)

    def test_callable_name_is_modifier(self) -> None:
        router = Router()

        def modifier(name, callback):
            return None

        router.param(modifier)

        assert router.params.modifiers == (modifier,)
        assert "modifier" not in router.params

    def test_modifiers_apply_in_order(self) -> None:
        router = Router()
        seen: list[str] = []

        def first(name, callback):
            seen.append(f"first:{name}:{callback.__name__}")
            return _other

        def second(name, callback):
            seen.append(f"second:{name}:{callback.__name__}")
            return None

        router.param(first)
        router.param(second)
        router.param("id", _handler)
        router.param("slug", _handler)

        assert seen == [
            "first:id:_handler",
            "second:id:_other",
            "first:slug:_handler",
            "second:slug:_other",
        ]
        assert router.params.get("id") == (_other,)

    def test_non_callable_after_modifiers(self) -> None:
        router = Router()
        with pytest.raises(ConfigurationError):
            router.param("id", "not callable")


class TestSealing:
    def test_seal_blocks_registration(self) -> None:
        router = Router().seal()
        assert router.sealed is True
        with pytest.raises(RouterSealedError):
            router.get("/x", _handler)
        with pytest.raises(RouterSealedError):
            router.param("id", _handler)

    def test_sealed_error_is_configuration_error(self) -> None:
        assert issubclass(RouterSealedError, ConfigurationError)

    def test_first_dispatch_seals(self) -> None:
        router = Router()
        router.get("/x", _handler)
        router.dispatch(Request("GET", "/x"), Response(), lambda error: None)
        assert router.sealed is True

    def test_seal_on_dispatch_can_be_disabled(self) -> None:
        router = Router(RouterConfig(seal_on_dispatch=False))
        router.get("/x", _handler)
        router.dispatch(Request("GET", "/x"), Response(), lambda error: None)
        assert router.sealed is False
        router.get("/y", _handler)

    def test_seal_is_idempotent(self) -> None:
        router = Router()
        assert router.seal().seal() is router


class TestMatch:
    def test_uses_request_route_as_prior(self) -> None:
        router = Router()
        router.get("/items/*", _handler)
        router.get("/items/:id", _handler)
        exact, wildcard = router.table.routes("get")

        request = Request("GET", "/items/1")
        first = router.match(request)
        assert first is not None
        assert first.route is exact

        request.route = first.route
        second = router.match(request)
        assert second is not None
        assert second.route is wildcard
        assert second.params == {"0": "1"}

        request.route = second.route
        assert router.match(request) is None


class TestBuild:
    def test_build(self) -> None:
        router = Router()
        router.get("/items/:id", _handler, name="item")
        assert router.build("item", {"id": 42}) == "/items/42"

    def test_unknown_name(self) -> None:
        router = Router()
        with pytest.raises(NoSuchRouteError, match="missing") as exc_info:
            router.build("missing")
        assert isinstance(exc_info.value, ConfigurationError)

    def test_missing_param(self) -> None:
        router = Router()
        router.get("/items/:id", _handler, name="item")
        with pytest.raises(BuildError):
            router.build("item")

    def test_default_verb_is_stable(self) -> None:
        router = Router()
        router.post("/items", _handler, name="items")
        router.get("/items/list", _handler, name="items")
        router.delete("/items/all", _handler, name="items")

        urls = {router.build("items") for _ in range(10)}
        assert urls == {"/items"}
        assert router.build("items", verb="get") == "/items/list"

    def test_name_added_on_reregistration(self) -> None:
        router = Router()
        router.get("/about", _handler)
        router.get("/about", _handler, name="about")
        assert router.build("about") == "/about"


class TestRepr:
    def test_repr(self) -> None:
        router = Router()
        router.get("/x", _handler)
        assert repr(router) == "<Router verbs=['get'] open>"


def test_dispatch_returns_dispatch_state() -> None:
    router = Router()
    terminal: list[Any] = []
    router.get("/x", _handler)
    dispatch = router.dispatch(Request("GET", "/x"), Response(), terminal.append)
    assert dispatch.suspended is False
    assert terminal == [None]
