"""Switchyard — request routing with a continuation-passing dispatch core.

Register verb/path templates with ordered callback chains, attach
per-parameter callbacks, and dispatch requests through them with
explicit error and skip-route signaling.

Basic usage::

    from switchyard import Request, Response, Router

    router = Router()

    @router.param("id")
    def load_item(request, response, next, value, name):
        request.state["item"] = items.get(value)
        next()

    @router.get("/items/:id", name="item")
    def show(request, response, next):
        response.send(str(request.state["item"]))

    router.dispatch(Request("GET", "/items/42"), Response(), done)
    router.build("item", {"id": 42})  # "/items/42"

Serve it over ASGI::

    from switchyard.asgi import RouterApp
    app = RouterApp(router)
"""

__version__ = "0.1.0"
__all__ = [
    "SKIP_ROUTE",
    "BuildError",
    "ConfigurationError",
    "ContinuationError",
    "Dispatch",
    "ErrorHandler",
    "HTTPError",
    "Handler",
    "MethodNotAllowed",
    "Next",
    "NoSuchRouteError",
    "NotFound",
    "Outcome",
    "Request",
    "Response",
    "Route",
    "RouteOptions",
    "Router",
    "RouterApp",
    "RouterConfig",
    "RouterSealedError",
    "SwitchyardError",
    "error_handler",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import switchyard`` fast while providing a clean top-level API.
    """
    if name == "Router":
        from switchyard.routing.router import Router

        return Router

    if name == "RouterConfig":
        from switchyard.config import RouterConfig

        return RouterConfig

    if name in ("Route", "RouteOptions"):
        from switchyard.routing import route as _route

        return getattr(_route, name)

    if name == "Request":
        from switchyard.http.request import Request

        return Request

    if name == "Response":
        from switchyard.http.response import Response

        return Response

    if name in ("SKIP_ROUTE", "Dispatch", "ErrorHandler", "Handler", "Next", "Outcome", "error_handler"):
        from switchyard import dispatch as _dispatch

        return getattr(_dispatch, name)

    if name == "RouterApp":
        from switchyard.asgi import RouterApp

        return RouterApp

    if name in (
        "BuildError",
        "ConfigurationError",
        "ContinuationError",
        "HTTPError",
        "MethodNotAllowed",
        "NoSuchRouteError",
        "NotFound",
        "RouterSealedError",
        "SwitchyardError",
    ):
        from switchyard import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
