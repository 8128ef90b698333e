"""
Error response models for the contract dispatcher.
"""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Issue(BaseModel):
    """A single schema violation.

    The shape is independent of the validation library that produced it:
    validators normalize their native errors into this model.
    """

    model_config = ConfigDict(frozen=True)

    code: str = Field(..., description="Machine-readable issue code, e.g. 'invalid_type'")
    message: str = Field(..., description="Human-readable description of the issue")
    path: List[Union[str, int]] = Field(
        default_factory=list,
        description="Location of the offending value within the validated input"
    )
    expected: Optional[str] = Field(None, description="Expected type, for 'invalid_type' issues")
    received: Optional[str] = Field(None, description="Received type, for 'invalid_type' issues")


class SchemaError(BaseModel):
    """Ordered issue list for one failing request location."""

    name: str = "ValidationError"
    issues: List[Issue] = Field(default_factory=list)

    def model_dump(self, **kwargs):
        """Drop unset expected/received members from issues by default."""
        kwargs.setdefault("exclude_none", True)
        return super().model_dump(**kwargs)


class RequestValidationErrorBody(BaseModel):
    """Default 400 body: one key per request location, null when it passed."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "pathParameterErrors": None,
                "headerErrors": None,
                "queryParameterErrors": None,
                "bodyErrors": {
                    "name": "ValidationError",
                    "issues": [
                        {
                            "code": "invalid_type",
                            "expected": "string",
                            "received": "undefined",
                            "message": "Required",
                            "path": ["ping"]
                        }
                    ]
                }
            }
        }
    )

    path_parameter_errors: Optional[SchemaError] = Field(None, alias="pathParameterErrors")
    header_errors: Optional[SchemaError] = Field(None, alias="headerErrors")
    query_parameter_errors: Optional[SchemaError] = Field(None, alias="queryParameterErrors")
    body_errors: Optional[SchemaError] = Field(None, alias="bodyErrors")

    @classmethod
    def from_error(cls, error) -> "RequestValidationErrorBody":
        """Build the body from a RequestValidationError."""
        return cls(
            path_parameter_errors=error.path_params,
            header_errors=error.headers,
            query_parameter_errors=error.query,
            body_errors=error.body,
        )

    def to_jsonable(self) -> dict:
        """Serialize with wire names; locations are always present, issues omit unset fields."""
        data = {}
        for name, field_info in type(self).model_fields.items():
            value = getattr(self, name)
            data[field_info.alias or name] = value.model_dump(mode="json") if value is not None else None
        return data


class ErrorResponse(BaseModel):
    """Generic error body used for server faults and malformed requests."""

    error: str = Field(..., description="Human-readable error message describing what went wrong")

    request_id: Optional[str] = Field(
        None,
        description="Unique identifier for this specific request"
    )

    def model_dump(self, **kwargs):
        kwargs.setdefault("exclude_none", True)
        return super().model_dump(**kwargs)
