"""
Dispatch binder: turns a contract and its handlers into registered routes.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from .application import RouteRegistrar, RouteStep
from .config import RouterOptions
from .error_models import RequestValidationErrorBody
from .exceptions import ConfigurationError, RequestValidationError
from .handlers import coerce_result, describe_handler
from .hooks import HookChain, compose_hooks
from .models import Reply, Request
from .responses import ResponseResolver
from .router import RouteTable
from .tree import BoundEndpoint, flatten
from .validation import RequestSnapshot, apply_parsed_values, validate_request

logger = logging.getLogger(__name__)

# Handler parameter name -> how to obtain it for a request
INJECTABLE = {
    "params": lambda request, reply, endpoint: request.path_params,
    "query": lambda request, reply, endpoint: request.query_params,
    "headers": lambda request, reply, endpoint: request.validated_headers,
    "body": lambda request, reply, endpoint: request.body,
    "request": lambda request, reply, endpoint: request,
    "reply": lambda request, reply, endpoint: reply,
    "endpoint": lambda request, reply, endpoint: endpoint,
}


@dataclass(frozen=True)
class ContractRouter:
    """A contract paired with a congruent handler tree, already flattened."""

    contract: Any
    handlers: Any
    endpoints: Tuple[BoundEndpoint, ...]


@dataclass(frozen=True)
class BoundRoute:
    """Everything registered for one endpoint."""

    endpoint: BoundEndpoint
    hooks: HookChain
    validator: RouteStep
    handler: RouteStep


def _injection_plan(handler: Callable, route_name: str) -> Tuple[List[str], bool]:
    """Resolve which injectable arguments a handler asks for.

    Raises:
        ConfigurationError: if the handler requires an argument that cannot be injected.
    """
    sig = inspect.signature(handler)
    names = []
    takes_kwargs = False
    for param_name, param in sig.parameters.items():
        if param.kind == inspect.Parameter.VAR_KEYWORD:
            takes_kwargs = True
        elif param.kind == inspect.Parameter.VAR_POSITIONAL:
            continue
        elif param_name in INJECTABLE:
            names.append(param_name)
        elif param.default is inspect.Parameter.empty:
            raise ConfigurationError(
                f"Handler {describe_handler(handler)} for {route_name!r} requires unknown argument "
                f"{param_name!r}; available: {', '.join(INJECTABLE)}"
            )
    return names, takes_kwargs


def _make_invoker(endpoint: BoundEndpoint) -> Callable[[Request, Reply], Any]:
    names, takes_kwargs = _injection_plan(endpoint.handler, endpoint.name)
    if takes_kwargs:
        names = list(INJECTABLE)

    async def invoke(request: Request, reply: Reply) -> Any:
        kwargs = {name: INJECTABLE[name](request, reply, endpoint) for name in names}
        result = endpoint.handler(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    return invoke


def _send_custom_result(result: Any, reply: Reply) -> None:
    if reply.sent or result is None:
        return
    response = coerce_result(result)
    reply.status(response.status)
    for name, value in (response.headers or {}).items():
        reply.header(name, value)
    reply.send(response.body)


def _check_routes(app: RouteRegistrar, bound: List[BoundRoute]) -> None:
    """Reject conflicts with the app and within ``bound`` before any route is added."""
    pending = RouteTable()
    for route in bound:
        endpoint = route.endpoint
        try:
            app.check_route(endpoint.method, endpoint.path)
            pending.add(endpoint.method, endpoint.path, endpoint.name)
        except ConfigurationError as e:
            raise ConfigurationError(f"{endpoint.name}: {e}") from e


def default_request_validation_error(error: RequestValidationError, request: Request, reply: Reply) -> None:
    """Send the default 400 body listing every request location."""
    reply.status(400).json(RequestValidationErrorBody.from_error(error).to_jsonable())


class ContractServer:
    """Binds contracts and handler trees onto a host application.

    Example:
        ```python
        server = ContractServer()
        router = server.router(contract, {
            "get_post": get_post,
            "create_post": {"handler": create_post, "hooks": {"pre_handler": audit}},
        })

        app = RestApplication()
        server.register_router(app, router, response_validation=True)
        # or: app.register(server.plugin(router), hooks={"on_request": authenticate})
        ```
    """

    def router(self, contract: Any, handlers: Any) -> ContractRouter:
        """Pair a contract with its handlers, checking congruence now."""
        return ContractRouter(contract=contract, handlers=handlers, endpoints=tuple(flatten(contract, handlers)))

    def bind(self, router: ContractRouter, options: RouterOptions) -> List[BoundRoute]:
        """Build hook chains, validation steps and handlers for every endpoint."""
        return [self._bind_endpoint(endpoint, options) for endpoint in router.endpoints]

    def register_router(
        self,
        app: RouteRegistrar,
        router: Any,
        handlers: Optional[Any] = None,
        **options: Any,
    ) -> List[BoundRoute]:
        """Register every endpoint of a router on ``app``.

        ``router`` is a ContractRouter, or a contract tree when ``handlers`` is
        given. All endpoints are bound and checked for route conflicts before
        the first one is added, so any error leaves the app untouched.

        Raises:
            ConfigurationError: on incongruent trees, malformed paths, unknown
                options or hook phases, or duplicate routes.
        """
        return self._register(app, router, handlers, RouterOptions.from_kwargs(**options))

    def _register(self, app: RouteRegistrar, router: Any, handlers: Optional[Any], config: RouterOptions) -> List[BoundRoute]:
        if not isinstance(router, ContractRouter):
            if handlers is None:
                raise ConfigurationError("register_router needs a ContractRouter or a contract with handlers")
            router = self.router(router, handlers)
        elif handlers is not None:
            raise ConfigurationError("handlers must not be given together with a ContractRouter")

        bound = self.bind(router, config)
        _check_routes(app, bound)
        for route in bound:
            endpoint = route.endpoint
            app.add_route(endpoint.method, endpoint.path, route.handler, hooks=route.hooks, validator=route.validator)
            if config.log_initialization:
                logger.info(f"Bound {endpoint.method.value} {endpoint.path} -> {endpoint.name}")
        return bound

    def plugin(self, router: ContractRouter, **defaults: Any) -> Callable[..., List[BoundRoute]]:
        """Wrap a router as a plugin for ``app.register(plugin, **options)``."""
        base = RouterOptions.from_kwargs(**defaults)

        def register(app: RouteRegistrar, **options: Any) -> List[BoundRoute]:
            return self._register(app, router, None, base.merged(options))

        return register

    def _bind_endpoint(self, endpoint: BoundEndpoint, options: RouterOptions) -> BoundRoute:
        try:
            hooks = compose_hooks(options.hooks, endpoint.route_hooks)
        except ConfigurationError as e:
            raise ConfigurationError(f"{endpoint.name}: {e}") from e

        invoke = _make_invoker(endpoint)
        resolver = ResponseResolver(
            endpoint.responses,
            response_validation=options.response_validation,
            unknown_status_policy=options.unknown_status_policy,
            route=f"{endpoint.method.value} {endpoint.path}",
        )
        error_handler = options.request_validation_error_handler

        async def validate(request: Request, reply: Reply) -> None:
            result = validate_request(endpoint, RequestSnapshot.from_request(request))
            if result.is_valid:
                apply_parsed_values(request, result)
                return

            error = result.to_error()
            if error_handler is not None:
                outcome = error_handler(error, request, reply)
                if inspect.isawaitable(outcome):
                    outcome = await outcome
                _send_custom_result(outcome, reply)
            if not reply.sent:
                default_request_validation_error(error, request, reply)

        async def handle(request: Request, reply: Reply) -> None:
            result = await invoke(request, reply)
            if reply.sent:
                # The handler wrote the reply itself
                return
            resolved = resolver.resolve(coerce_result(result))
            resolver.send(resolved, reply)

        return BoundRoute(endpoint=endpoint, hooks=hooks, validator=validate, handler=handle)


def init_server() -> ContractServer:
    """Create a ContractServer."""
    return ContractServer()

