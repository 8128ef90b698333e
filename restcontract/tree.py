"""Flattening of a contract tree and its congruent handler tree."""

from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Mapping, Optional, Tuple

from .contract import ContractGroup, Endpoint, ResponseSpec, check_path_template
from .exceptions import ConfigurationError
from .handlers import HandlerEntry, to_handler_entry
from .models import HTTPMethod
from .schemas import Validator, as_validator


@dataclass(frozen=True)
class BoundEndpoint:
    """An endpoint resolved to its absolute path and handler.

    Built once at registration and shared read-only by every request.
    """

    name: str
    method: HTTPMethod
    path: str
    endpoint: Endpoint
    handler: Callable
    route_hooks: Mapping[str, Any]
    path_params_validator: Optional[Validator]
    query_validator: Optional[Validator]
    headers_validator: Optional[Validator]
    body_validator: Optional[Validator]

    @property
    def responses(self) -> Mapping[int, ResponseSpec]:
        return self.endpoint.responses


def _children(node: Any) -> Tuple[Mapping[str, Any], str]:
    if isinstance(node, ContractGroup):
        return node.routes, node.path_prefix
    return node, ""


def zip_trees(contract: Any, handlers: Any, prefix: str = "", name: str = "") -> Iterator[Tuple[str, str, Endpoint, Any]]:
    """Walk a contract tree and a handler tree in lockstep.

    Yields ``(dotted_name, absolute_path, endpoint, handler_leaf)`` in the
    insertion order of the contract tree.

    Raises:
        ConfigurationError: if a key exists in one tree but not the other, or
            a group in the contract meets a non-mapping in the handler tree.
    """
    if isinstance(contract, Endpoint):
        yield name, prefix + contract.path, contract, handlers
        return

    if not isinstance(contract, (ContractGroup, Mapping)):
        raise ConfigurationError(f"Contract node {name or '<root>'!r} must be an Endpoint or a group, got {type(contract).__name__}")

    routes, path_prefix = _children(contract)
    if not isinstance(handlers, Mapping) or "handler" in handlers and "handler" not in routes:
        raise ConfigurationError(f"Handler tree at {name or '<root>'!r} must be a mapping mirroring the contract group")

    missing = [key for key in routes if key not in handlers]
    extra = [key for key in handlers if key not in routes]
    if missing:
        raise ConfigurationError(f"Missing handler(s) for {', '.join(_join(name, k) for k in missing)}")
    if extra:
        raise ConfigurationError(f"Handler(s) for undeclared route(s): {', '.join(_join(name, k) for k in extra)}")

    for key, child in routes.items():
        yield from zip_trees(child, handlers[key], prefix + path_prefix, _join(name, key))


def _join(parent: str, key: str) -> str:
    return f"{parent}.{key}" if parent else key


def bind_endpoint(name: str, path: str, endpoint: Endpoint, entry: HandlerEntry) -> BoundEndpoint:
    return BoundEndpoint(
        name=name,
        method=endpoint.method,
        path=check_path_template(path),
        endpoint=endpoint,
        handler=entry.handler,
        route_hooks=entry.hooks,
        path_params_validator=as_validator(endpoint.path_params),
        query_validator=as_validator(endpoint.query),
        headers_validator=as_validator(endpoint.headers),
        body_validator=as_validator(endpoint.body),
    )


def flatten(contract: Any, handlers: Any) -> List[BoundEndpoint]:
    """Flatten congruent contract and handler trees into bound endpoints.

    Path prefixes compose by plain concatenation, so a group prefixed
    ``/v1`` holding a group prefixed ``/posts`` holding ``/:postId``
    yields ``/v1/posts/:postId``.
    """
    bound = []
    for name, path, endpoint, leaf in zip_trees(contract, handlers):
        try:
            bound.append(bind_endpoint(name, path, endpoint, to_handler_entry(leaf, name)))
        except ConfigurationError as e:
            raise ConfigurationError(f"{name}: {e}") from e
    return bound
