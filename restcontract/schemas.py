"""
Schema seam between the dispatcher and the validation library.

The dispatcher only needs two operations from a schema: validate a raw value
into a parsed value, and project a value onto the schema (validate, then emit
only declared fields). Pydantic is the default backend; any object that
implements the Validator protocol can be used instead.
"""

import logging
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

from pydantic import TypeAdapter, ValidationError as PydanticValidationError
from pydantic.errors import PydanticInvalidForJsonSchema, PydanticUserError

from .error_models import Issue, SchemaError
from .exceptions import ConfigurationError, SchemaValidationError

logger = logging.getLogger(__name__)


@runtime_checkable
class Validator(Protocol):
    """Interface the dispatcher expects from a compiled schema."""

    def validate(self, value: Any) -> Any:
        """Return the parsed value or raise SchemaValidationError."""
        ...

    def project(self, value: Any) -> Any:
        """Validate and return a JSON-compatible value holding only declared fields."""
        ...


# Pydantic error type prefix -> type name reported in issues
_TYPE_NAMES = {
    "string": "string",
    "str": "string",
    "int": "integer",
    "float": "number",
    "decimal": "number",
    "bool": "boolean",
    "dict": "object",
    "model": "object",
    "model_attributes": "object",
    "dataclass": "object",
    "list": "array",
    "tuple": "array",
    "set": "array",
    "frozen_set": "array",
    "bytes": "bytes",
    "date": "date",
    "datetime": "datetime",
    "time": "time",
    "uuid": "uuid",
}

_TOO_SMALL = {"string_too_short", "too_short", "greater_than", "greater_than_equal"}
_TOO_BIG = {"string_too_long", "too_long", "less_than", "less_than_equal"}


def describe_type(value: Any) -> str:
    """Name the JSON-ish type of a received value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple, set, frozenset)):
        return "array"
    if isinstance(value, bytes):
        return "bytes"
    return type(value).__name__


def _resolve_ref(node: Dict[str, Any], defs: Dict[str, Any]) -> Dict[str, Any]:
    while isinstance(node, dict) and "$ref" in node:
        node = defs.get(node["$ref"].rsplit("/", 1)[-1], {})
    if isinstance(node, dict) and len(node.get("allOf", [])) == 1:
        return _resolve_ref(node["allOf"][0], defs)
    return node


def _first_non_null(node: Dict[str, Any], defs: Dict[str, Any]) -> Dict[str, Any]:
    for option in node.get("anyOf", []):
        option = _resolve_ref(option, defs)
        if option.get("type") != "null":
            return option
    return node


def expected_type_at(json_schema: Dict[str, Any], loc: Sequence[Union[str, int]]) -> Optional[str]:
    """Walk a JSON schema along an error location and name the expected type."""
    defs = json_schema.get("$defs", {})
    node = _first_non_null(_resolve_ref(json_schema, defs), defs)
    for key in loc:
        if isinstance(key, int):
            node = node.get("items")
        else:
            node = node.get("properties", {}).get(key)
        if not isinstance(node, dict):
            return None
        node = _first_non_null(_resolve_ref(node, defs), defs)

    if "type" in node:
        return node["type"]
    if "enum" in node:
        return "enum"
    if "const" in node:
        return "literal"
    return None


class PydanticValidator:
    """Validator backed by a pydantic TypeAdapter.

    Accepts anything pydantic can adapt: BaseModel subclasses, TypedDicts,
    dataclasses, builtin types and Annotated constraints.
    """

    def __init__(self, schema: Any):
        self.schema = schema
        self._adapter = TypeAdapter(schema)

    def __repr__(self):
        return f"PydanticValidator({getattr(self.schema, '__name__', self.schema)!r})"

    @cached_property
    def json_schema(self) -> Dict[str, Any]:
        try:
            return self._adapter.json_schema(mode="validation")
        except PydanticInvalidForJsonSchema:
            logger.debug(f"No JSON schema available for {self!r}; expected types will be omitted")
            return {}

    def validate(self, value: Any) -> Any:
        try:
            return self._adapter.validate_python(value)
        except PydanticValidationError as e:
            raise SchemaValidationError(self.issues_from(e)) from e

    def project(self, value: Any) -> Any:
        return self._adapter.dump_python(self.validate(value), mode="json")

    def issues_from(self, error: PydanticValidationError) -> List[Issue]:
        """Normalize pydantic error details into Issues, preserving order."""
        return [self._issue(detail) for detail in error.errors(include_url=False)]

    def _issue(self, detail: Dict[str, Any]) -> Issue:
        error_type = detail["type"]
        path = list(detail.get("loc", ()))
        message = detail.get("msg", "")

        if error_type == "missing":
            return Issue(
                code="invalid_type",
                message="Required",
                path=path,
                expected=expected_type_at(self.json_schema, path) or "unknown",
                received="undefined",
            )

        if error_type.startswith("url_") and error_type != "url_type":
            return Issue(code="invalid_string", message=message, path=path)

        for suffix in ("_type", "_parsing"):
            if error_type.endswith(suffix):
                prefix = error_type[: -len(suffix)]
                return Issue(
                    code="invalid_type",
                    message=message,
                    path=path,
                    expected=_TYPE_NAMES.get(prefix, prefix),
                    received=describe_type(detail.get("input")),
                )
        if error_type in ("none_required", "int_from_float"):
            return Issue(
                code="invalid_type",
                message=message,
                path=path,
                expected="null" if error_type == "none_required" else "integer",
                received=describe_type(detail.get("input")),
            )

        if error_type == "extra_forbidden":
            code = "unrecognized_keys"
        elif error_type in _TOO_SMALL:
            code = "too_small"
        elif error_type in _TOO_BIG:
            code = "too_big"
        elif error_type == "string_pattern_mismatch":
            code = "invalid_string"
        elif error_type == "enum":
            code = "invalid_enum_value"
        elif error_type == "literal_error":
            code = "invalid_literal"
        elif error_type == "multiple_of":
            code = "not_multiple_of"
        else:
            code = "custom"
        return Issue(code=code, message=message, path=path)


def as_validator(schema: Any) -> Optional[Validator]:
    """Compile a schema declaration into a Validator.

    None means "no constraint". Objects already implementing Validator are
    returned unchanged; anything else is handed to pydantic.
    """
    if schema is None:
        return None
    if not isinstance(schema, type) and isinstance(schema, Validator):
        return schema
    try:
        return PydanticValidator(schema)
    except PydanticUserError as e:
        raise ConfigurationError(f"Cannot build a validator for {schema!r}: {e}") from e


@dataclass(frozen=True)
class Valid:
    """A location that passed validation (or had no schema)."""

    value: Any


@dataclass(frozen=True)
class Invalid:
    """A location that failed validation."""

    error: SchemaError

    @property
    def issues(self) -> List[Issue]:
        return self.error.issues


ValidationOutcome = Union[Valid, Invalid]


def run_validator(validator: Optional[Validator], value: Any) -> ValidationOutcome:
    """Validate one value; a missing validator passes the raw value through."""
    if validator is None:
        return Valid(value)
    try:
        return Valid(validator.validate(value))
    except SchemaValidationError as e:
        return Invalid(SchemaError(name=e.name, issues=e.issues))
