"""
Request validation engine.

All four request locations are validated independently and exhaustively, so
one bad request yields a report covering every failing location.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .exceptions import RequestValidationError
from .error_models import SchemaError
from .models import Request
from .schemas import Invalid, Valid, ValidationOutcome, run_validator
from .tree import BoundEndpoint

logger = logging.getLogger(__name__)

# Evaluation and reporting order of request locations
LOCATIONS = ("path_params", "headers", "query", "body")


@dataclass(frozen=True)
class RequestSnapshot:
    """Raw request inputs as extracted by the host framework."""

    path_params: Any
    query: Any
    headers: Any
    body: Any

    @classmethod
    def from_request(cls, request: Request) -> "RequestSnapshot":
        return cls(
            path_params=dict(request.path_params),
            query=dict(request.query_params),
            headers=request.headers.to_validation_dict(),
            body=request.body,
        )


@dataclass(frozen=True)
class RequestValidationResult:
    """Combined outcome of the four locations."""

    path_params: ValidationOutcome
    headers: ValidationOutcome
    query: ValidationOutcome
    body: ValidationOutcome

    @property
    def is_valid(self) -> bool:
        return all(isinstance(getattr(self, location), Valid) for location in LOCATIONS)

    def errors(self) -> Dict[str, Optional[SchemaError]]:
        """Every location mapped to its SchemaError, or None when it passed."""
        result: Dict[str, Optional[SchemaError]] = {}
        for location in LOCATIONS:
            outcome = getattr(self, location)
            result[location] = outcome.error if isinstance(outcome, Invalid) else None
        return result

    def values(self) -> Dict[str, Any]:
        """Parsed values per location.

        Raises:
            RequestValidationError: if any location failed.
        """
        if not self.is_valid:
            raise self.to_error()
        return {location: getattr(self, location).value for location in LOCATIONS}

    def to_error(self) -> RequestValidationError:
        return RequestValidationError(**self.errors())


def validate_request(endpoint: BoundEndpoint, snapshot: RequestSnapshot) -> RequestValidationResult:
    """Validate every request location against the endpoint's schemas.

    Locations without a schema are Valid with their raw value. A failure in
    one location never prevents evaluation of the others.
    """
    result = RequestValidationResult(
        path_params=run_validator(endpoint.path_params_validator, snapshot.path_params),
        headers=run_validator(endpoint.headers_validator, snapshot.headers),
        query=run_validator(endpoint.query_validator, snapshot.query),
        body=run_validator(endpoint.body_validator, snapshot.body),
    )
    if not result.is_valid:
        failing = [location for location, error in result.errors().items() if error is not None]
        logger.debug(f"Request to {endpoint.method.value} {endpoint.path} failed validation in: {', '.join(failing)}")
    return result


def apply_parsed_values(request: Request, result: RequestValidationResult) -> None:
    """Replace raw request inputs with their parsed values."""
    values = result.values()
    request.path_params = values["path_params"]
    request.query_params = values["query"]
    request.validated_headers = values["headers"]
    request.body = values["body"]
