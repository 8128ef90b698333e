"""
Response resolution: content type selection, response validation and emission.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Literal, Mapping, Optional

from .contract import ResponseSpec
from .error_models import Issue
from .exceptions import ResponseValidationError, SchemaValidationError
from .handlers import EndpointResponse
from .models import Reply
from .schemas import Validator, as_validator, describe_type

logger = logging.getLogger(__name__)

UnknownStatusPolicy = Literal["warn", "error", "ignore"]


@dataclass(frozen=True)
class ResolvedResponse:
    """A handler result ready to be written to the reply.

    ``structured`` means JSON encoding; otherwise ``content_type`` is the
    declared type and the body goes out verbatim. ``declared`` is False when
    the contract has no spec for the status.
    """

    status: int
    body: Any
    content_type: Optional[str] = None
    structured: bool = True
    declared: bool = True
    headers: Optional[Mapping[str, str]] = None


class ResponseResolver:
    """Resolves handler results against one endpoint's response specs.

    Response validators are compiled once, when the resolver is built at
    registration time.
    """

    def __init__(
        self,
        responses: Mapping[int, ResponseSpec],
        response_validation: bool = False,
        unknown_status_policy: UnknownStatusPolicy = "warn",
        route: str = "",
    ):
        self.responses = responses
        self.response_validation = response_validation
        self.unknown_status_policy = unknown_status_policy
        self.route = route
        self._validators: Dict[int, Optional[Validator]] = {
            status: as_validator(spec.schema) for status, spec in responses.items()
        }

    def resolve(self, result: EndpointResponse) -> ResolvedResponse:
        """Apply the declared spec for ``result.status`` to the body.

        Raises:
            ResponseValidationError: when response validation is enabled and
                the body violates the schema, when the status is undeclared
                and the policy is "error", or when a response with an explicit
                content type has a body that is not str or bytes.
        """
        spec = self.responses.get(result.status)
        if spec is None:
            return self._resolve_undeclared(result)

        body = result.body
        validator = self._validators.get(result.status)
        if self.response_validation and validator is not None:
            try:
                if spec.is_structured:
                    # Projection strips fields the schema does not declare
                    body = validator.project(body)
                else:
                    validator.validate(body)
            except SchemaValidationError as e:
                raise ResponseValidationError(result.status, e.issues, cause=e) from e

        if not spec.is_structured and not isinstance(body, (str, bytes, type(None))):
            # Declared non-JSON types are sent verbatim, never re-encoded
            raise ResponseValidationError(result.status, [Issue(
                code="invalid_type",
                message=f"Body for {spec.content_type} must be str or bytes",
                path=[],
                expected="string",
                received=describe_type(body),
            )])

        return ResolvedResponse(
            status=result.status,
            body=body,
            content_type=spec.content_type,
            structured=spec.is_structured,
            headers=result.headers,
        )

    def _resolve_undeclared(self, result: EndpointResponse) -> ResolvedResponse:
        if self.unknown_status_policy == "error":
            raise ResponseValidationError(result.status)
        if self.unknown_status_policy == "warn":
            logger.warning(
                f"{self.route} returned status {result.status}, which its contract does not declare; "
                "sending the body without validation"
            )
        return ResolvedResponse(
            status=result.status,
            body=result.body,
            structured=False,
            declared=False,
            headers=result.headers,
        )

    @staticmethod
    def send(resolved: ResolvedResponse, reply: Reply) -> None:
        """Write a resolved response to the reply."""
        reply.status(resolved.status)
        for name, value in (resolved.headers or {}).items():
            reply.header(name, value)

        if resolved.structured:
            reply.json(resolved.body)
        elif resolved.content_type is not None:
            reply.type(resolved.content_type)
            reply.send(resolved.body)
        else:
            # Undeclared status: host default serialization
            reply.send(resolved.body)
