"""
Declarative contract tree: endpoints, response specs and prefixed groups.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

from .exceptions import ConfigurationError
from .models import HTTPMethod

DEFAULT_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class ResponseSpec:
    """Schema for one response status.

    A spec without content_type uses structured (JSON) encoding: when response
    validation is enabled the body is validated and undeclared fields are
    stripped. A spec with an explicit content_type is emitted verbatim.
    """

    schema: Any = None
    content_type: Optional[str] = None

    @property
    def is_structured(self) -> bool:
        return self.content_type is None


def response(schema: Any = None) -> ResponseSpec:
    """Declare a structured response, optionally without a runtime schema."""
    return ResponseSpec(schema=schema)


def other_response(content_type: str, body: Any = None) -> ResponseSpec:
    """Declare a response with a non-default content type (text/html, text/plain...)."""
    if not content_type:
        raise ConfigurationError("other_response requires a content type")
    return ResponseSpec(schema=body, content_type=content_type)


def _to_response_spec(value: Any) -> ResponseSpec:
    if isinstance(value, ResponseSpec):
        return value
    return ResponseSpec(schema=value)


@dataclass(frozen=True)
class Endpoint:
    """A single route: method, path template and its schemas.

    Example:
        ```python
        get_post = Endpoint(
            method="GET",
            path="/:postId",
            path_params=PostParams,
            responses={200: Post, 404: None},
        )
        ```
    """

    method: HTTPMethod
    path: str
    responses: Mapping[int, ResponseSpec] = field(default_factory=dict)
    path_params: Any = None
    query: Any = None
    headers: Any = None
    body: Any = None
    summary: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        method = self.method
        if not isinstance(method, HTTPMethod):
            try:
                method = HTTPMethod(str(method).upper())
            except ValueError:
                raise ConfigurationError(f"Unsupported HTTP method {self.method!r} for path {self.path!r}") from None
        object.__setattr__(self, "method", method)

        responses: Dict[int, ResponseSpec] = {}
        for status, spec in dict(self.responses).items():
            if not isinstance(status, int) or isinstance(status, bool):
                raise ConfigurationError(f"Response status codes must be integers, got {status!r}")
            responses[status] = _to_response_spec(spec)
        object.__setattr__(self, "responses", MappingProxyType(responses))

    def response_for(self, status: int) -> Optional[ResponseSpec]:
        return self.responses.get(status)


@dataclass(frozen=True)
class ContractGroup:
    """A named collection of endpoints and sub-groups sharing a path prefix."""

    routes: Mapping[str, "ContractNode"]
    path_prefix: str = ""

    def __post_init__(self):
        object.__setattr__(self, "routes", MappingProxyType(dict(self.routes)))


ContractNode = Union[Endpoint, ContractGroup, Mapping[str, Any]]


def router(routes: Mapping[str, ContractNode], path_prefix: str = "") -> ContractGroup:
    """Group endpoints under an optional path prefix."""
    return ContractGroup(routes=routes, path_prefix=path_prefix)


def path_param_names(path: str) -> List[str]:
    """Return the parameter names of a ``:name`` path template, in order."""
    return [segment[1:] for segment in path.split("/") if segment.startswith(":")]


def check_path_template(path: str) -> str:
    """Validate a composed path template.

    Raises:
        ConfigurationError: if the path is empty, relative, has empty or
            whitespace segments, or binds a parameter name twice.
    """
    if not path:
        raise ConfigurationError("Route path must not be empty")
    if not path.startswith("/"):
        raise ConfigurationError(f"Route path {path!r} must start with '/'")

    segments = path.split("/")[1:]
    seen = set()
    for index, segment in enumerate(segments):
        # Trailing slash is allowed, inner empty segments are not ("//")
        if segment == "" and index != len(segments) - 1:
            raise ConfigurationError(f"Route path {path!r} contains an empty segment")
        if any(ch.isspace() for ch in segment):
            raise ConfigurationError(f"Route path {path!r} contains whitespace")
        if segment.startswith(":"):
            name = segment[1:]
            if not name:
                raise ConfigurationError(f"Route path {path!r} has an unnamed parameter")
            if name in seen:
                raise ConfigurationError(f"Route path {path!r} binds parameter {name!r} more than once")
            seen.add(name)
    return path
