"""
Handler map leaves and the value handlers return.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from .exceptions import ConfigurationError


@dataclass(frozen=True)
class EndpointResponse:
    """What a handler returns: a status code and a body.

    Handlers may equally return a plain ``(status, body)`` tuple.
    """

    status: int
    body: Any = None
    headers: Optional[Mapping[str, str]] = None


@dataclass(frozen=True)
class HandlerEntry:
    """A handler bundled with route-scoped hooks, keyed by phase name."""

    handler: Callable
    hooks: Mapping[str, Any] = field(default_factory=dict)


def to_handler_entry(leaf: Any, route_name: str) -> HandlerEntry:
    """Normalize a handler map leaf.

    Accepts a bare callable, a HandlerEntry, or a mapping with a ``handler``
    key and an optional ``hooks`` key.
    """
    if isinstance(leaf, HandlerEntry):
        entry = leaf
    elif isinstance(leaf, Mapping) and "handler" in leaf:
        unknown = set(leaf) - {"handler", "hooks"}
        if unknown:
            raise ConfigurationError(f"Handler for {route_name!r} has unknown keys: {sorted(unknown)}")
        entry = HandlerEntry(handler=leaf["handler"], hooks=leaf.get("hooks") or {})
    elif callable(leaf):
        entry = HandlerEntry(handler=leaf)
    else:
        raise ConfigurationError(f"Handler for {route_name!r} must be callable, got {type(leaf).__name__}")

    if not callable(entry.handler):
        raise ConfigurationError(f"Handler for {route_name!r} must be callable")
    if not isinstance(entry.hooks, Mapping):
        raise ConfigurationError(f"Hooks for {route_name!r} must be a mapping of phase to hook(s)")
    return entry


def coerce_result(result: Any) -> EndpointResponse:
    """Turn a handler's return value into an EndpointResponse.

    Raises:
        TypeError: if the value is neither an EndpointResponse nor a
            ``(status, body)`` pair.
    """
    if isinstance(result, EndpointResponse):
        return result
    if isinstance(result, tuple) and len(result) == 2 and isinstance(result[0], int):
        return EndpointResponse(status=result[0], body=result[1])
    raise TypeError(
        f"Handlers must return (status, body) or EndpointResponse, got {type(result).__name__}"
    )


def describe_handler(handler: Callable) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)
