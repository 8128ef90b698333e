"""
Custom exceptions for the contract dispatcher.
"""
from typing import TYPE_CHECKING, Any, List, Optional

if TYPE_CHECKING:
    from .error_models import Issue, SchemaError


class RestContractError(Exception):
    """Base exception for contract dispatcher errors."""

    pass


class ConfigurationError(RestContractError):
    """Raised at registration time when a contract cannot be bound.

    Covers structural mismatches between the contract tree and the handler
    tree, malformed composed paths, unknown options and unknown hook phases.
    """

    pass


class SchemaValidationError(RestContractError):
    """Raised by a validator when a value does not satisfy its schema."""

    def __init__(self, issues: List["Issue"], name: str = "ValidationError"):
        self.issues = list(issues)
        self.name = name
        super().__init__(f"{len(self.issues)} validation issue(s)")


class RequestValidationError(RestContractError):
    """One or more request locations failed schema validation.

    Each attribute is either None (the location passed or had no schema) or
    the SchemaError describing the failing location.
    """

    def __init__(
        self,
        path_params: Optional["SchemaError"] = None,
        headers: Optional["SchemaError"] = None,
        query: Optional["SchemaError"] = None,
        body: Optional["SchemaError"] = None,
    ):
        self.path_params = path_params
        self.headers = headers
        self.query = query
        self.body = body
        failing = [name for name in ("path_params", "headers", "query", "body") if getattr(self, name) is not None]
        super().__init__(f"Request validation failed: {', '.join(failing)}")

    @property
    def failing_locations(self) -> List[str]:
        """Names of the locations that failed, in evaluation order."""
        return [name for name in ("path_params", "headers", "query", "body") if getattr(self, name) is not None]


class ResponseValidationError(RestContractError):
    """A handler returned a body that violates its declared response schema."""

    message = "Response validation failed"

    def __init__(self, status: int, issues: Optional[List["Issue"]] = None, cause: Optional[Any] = None):
        self.status = status
        self.issues = list(issues or [])
        self.cause = cause
        super().__init__(self.message)


class HookShortCircuit(Exception):
    """Raised by a hook to end the request with its own response.

    Not an error: the dispatcher sends the given response and skips every
    remaining phase, including validation and the handler.
    """

    def __init__(self, status: int, body: Any = None, content_type: Optional[str] = None):
        self.status = status
        self.body = body
        self.content_type = content_type
        super().__init__(f"Hook short-circuited with status {status}")


class BodyParsingError(RestContractError):
    """Raised by the host when a request body cannot be decoded."""

    def __init__(self, message: str = "Failed to parse request body", original_exception: Optional[Exception] = None):
        self.message = message
        self.original_exception = original_exception
        super().__init__(self.message)
