"""
Contract-driven request dispatch with Pydantic-based validation.

Declare an API as a tree of endpoints (method, path, request schemas and
per-status response schemas), supply a congruent tree of handlers, and the
dispatcher binds each endpoint onto a host application with request
validation, optional response validation and composed lifecycle hooks.
"""

from http import HTTPStatus

from .adapters import ASGIAdapter, create_asgi_app
from .application import RestApplication, RouteRegistrar
from .config import RouterOptions
from .contract import ContractGroup, Endpoint, ResponseSpec, other_response, response, router
from .error_models import ErrorResponse, Issue, RequestValidationErrorBody, SchemaError
from .exceptions import (
    ConfigurationError,
    HookShortCircuit,
    RequestValidationError,
    ResponseValidationError,
    RestContractError,
    SchemaValidationError,
)
from .handlers import EndpointResponse, HandlerEntry
from .hooks import HookPhase
from .models import HTTPMethod, Reply, Request, Response
from .schemas import PydanticValidator, Validator
from .server import ContractRouter, ContractServer, init_server
from .tree import BoundEndpoint, flatten
from .validation import RequestValidationResult, validate_request

__version__ = "0.1.0"
__author__ = "REST Contract Contributors"
__license__ = "MIT"

__all__ = [
    "ASGIAdapter",
    "BoundEndpoint",
    "ConfigurationError",
    "ContractGroup",
    "ContractRouter",
    "ContractServer",
    "Endpoint",
    "EndpointResponse",
    "ErrorResponse",
    "HandlerEntry",
    "HookPhase",
    "HookShortCircuit",
    "HTTPMethod",
    "HTTPStatus",
    "Issue",
    "PydanticValidator",
    "Reply",
    "Request",
    "RequestValidationError",
    "RequestValidationErrorBody",
    "RequestValidationResult",
    "Response",
    "ResponseSpec",
    "ResponseValidationError",
    "RestApplication",
    "RestContractError",
    "RouteRegistrar",
    "RouterOptions",
    "SchemaError",
    "SchemaValidationError",
    "Validator",
    "create_asgi_app",
    "flatten",
    "init_server",
    "other_response",
    "response",
    "router",
    "validate_request",
]
