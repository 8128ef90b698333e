"""
Host application: route registry, request lifecycle and generic error handling.

The dispatcher binds onto anything implementing RouteRegistrar; RestApplication
is the implementation shipped with the package and the one the ASGI adapter
serves.
"""

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol
from urllib.parse import parse_qs

from .error_models import ErrorResponse
from .exceptions import BodyParsingError, ResponseValidationError
from .hooks import HookChain, HookPhase, run_phase
from .models import HTTPMethod, Reply, Request, Response
from .router import RouteTable

logger = logging.getLogger(__name__)

RouteStep = Callable[[Request, Reply], Awaitable[None]]
ErrorHandler = Callable[[Exception, Request, Reply], Any]


class RouteRegistrar(Protocol):
    """Routing facility the dispatcher registers endpoints on."""

    def add_route(
        self,
        method: HTTPMethod,
        path: str,
        handler: RouteStep,
        hooks: Optional[HookChain] = None,
        validator: Optional[RouteStep] = None,
    ) -> None:
        ...

    def check_route(self, method: HTTPMethod, path: str) -> None:
        """Raise ConfigurationError if ``add_route(method, path, ...)`` would fail."""
        ...


@dataclass(frozen=True)
class Route:
    """One registered route: its hook chain, validation step and terminal handler."""

    method: HTTPMethod
    path: str
    handler: RouteStep
    hooks: HookChain
    validator: Optional[RouteStep] = None


def parse_query_string(query_string: str) -> dict:
    """Parse a query string; repeated keys become lists."""
    parsed = parse_qs(query_string, keep_blank_values=True)
    return {key: values[0] if len(values) == 1 else values for key, values in parsed.items()}


class RestApplication:
    """Minimal async HTTP host for contract routers.

    Example:
        ```python
        app = RestApplication()
        server = ContractServer()
        server.register_router(app, server.router(contract, handlers))
        response = app.execute(Request(method="GET", path="/test"))
        ```
    """

    def __init__(self):
        self._routes = RouteTable()
        self._error_handler: Optional[ErrorHandler] = None
        self.routes = []

    def add_route(
        self,
        method: HTTPMethod,
        path: str,
        handler: RouteStep,
        hooks: Optional[HookChain] = None,
        validator: Optional[RouteStep] = None,
    ) -> None:
        route = Route(method, path, handler, hooks or HookChain(phases={}), validator)
        self._routes.add(method, path, route)
        self.routes.append(route)

    def check_route(self, method: HTTPMethod, path: str) -> None:
        self._routes.check(method, path)

    def register(self, plugin: Callable[..., Any], **options: Any) -> None:
        """Register a plugin: a callable taking the app and keyword options."""
        plugin(self, **options)

    def set_error_handler(self, func: ErrorHandler) -> ErrorHandler:
        """Replace the generic error handler. Usable as a decorator.

        The handler receives ``(error, request, reply)`` and must send on the
        reply; it may be sync or async.
        """
        self._error_handler = func
        return func

    def execute(self, request: Request) -> Response:
        """Execute a request synchronously."""
        return asyncio.run(self.handle(request))

    async def handle(self, request: Request) -> Response:
        """Run a request through routing, hooks, validation and its handler."""
        reply = Reply()
        route, params, allowed = self._routes.match(request.method, request.path)

        if route is None:
            if allowed:
                reply.status(405).header("Allow", ", ".join(m.value for m in allowed))
                reply.json(ErrorResponse(error="Method Not Allowed").model_dump())
            else:
                reply.status(404).json(ErrorResponse(error="Not Found").model_dump())
            return reply.to_response()

        request.path_params = params
        try:
            await self._run_route(route, request, reply)
        except Exception as e:
            await self._handle_error(e, request, reply)

        try:
            await run_phase(route.hooks, HookPhase.ON_RESPONSE, request, reply)
        except Exception:
            # The response is final at this point; a failing hook cannot change it
            logger.exception(f"on_response hook failed for {request.method.value} {request.path}")

        return reply.to_response()

    async def _run_route(self, route: Route, request: Request, reply: Reply) -> None:
        if await run_phase(route.hooks, HookPhase.ON_REQUEST, request, reply):
            return
        if await run_phase(route.hooks, HookPhase.PRE_PARSING, request, reply):
            return

        request.body = self._parse_body(request)

        if await run_phase(route.hooks, HookPhase.PRE_VALIDATION, request, reply):
            return
        if route.validator is not None:
            await route.validator(request, reply)
            if reply.sent:
                return
        if await run_phase(route.hooks, HookPhase.PRE_HANDLER, request, reply):
            return

        await route.handler(request, reply)
        if not reply.sent:
            raise RuntimeError(f"Route {route.method.value} {route.path} finished without sending a reply")

    def _parse_body(self, request: Request) -> Any:
        """Decode the raw body according to Content-Type; empty bodies become None."""
        body = request.body
        if body is None or body == b"" or body == "":
            return None
        if not isinstance(body, (bytes, str)):
            # Already parsed (e.g. by a pre_parsing hook)
            return body

        try:
            text = body.decode("utf-8") if isinstance(body, bytes) else body
        except UnicodeDecodeError as e:
            raise BodyParsingError("Invalid request body encoding", original_exception=e) from e
        content_type = request.get_content_type() or ""

        if content_type == "application/json" or content_type.endswith("+json"):
            try:
                return json.loads(text)
            except json.JSONDecodeError as e:
                raise BodyParsingError("Invalid JSON body", original_exception=e) from e
        if content_type == "application/x-www-form-urlencoded":
            return parse_query_string(text)
        return text

    async def _handle_error(self, error: Exception, request: Request, reply: Reply) -> None:
        if reply.sent:
            logger.error(f"Error after reply was sent for {request.method.value} {request.path}: {error}")
            return

        if self._error_handler is not None:
            try:
                result = self._error_handler(error, request, reply)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Error handler failed for {request.method.value} {request.path}")
            if reply.sent:
                return

        self._default_error(error, request, reply)

    def _default_error(self, error: Exception, request: Request, reply: Reply) -> None:
        request_id = request.headers.get("x-request-id")
        if isinstance(error, ResponseValidationError):
            logger.error(
                f"Response validation failed for {request.method.value} {request.path} "
                f"(status {error.status}, {len(error.issues)} issue(s))"
            )
            status = 500
            message = error.message
        elif isinstance(error, BodyParsingError):
            logger.debug(f"Malformed body for {request.method.value} {request.path}: {error.message}")
            status = 400
            message = error.message
        else:
            logger.error(f"Unhandled exception processing {request.method.value} {request.path}: {error}", exc_info=error)
            status = 500
            message = "Internal Server Error"

        reply.status(status).json(ErrorResponse(error=message, request_id=request_id).model_dump())
