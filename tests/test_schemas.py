"""Tests for the schema seam: pydantic-backed validators and issue normalization."""

from enum import Enum
from typing import Annotated, List, Literal, Optional

import pytest
from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from restcontract import ConfigurationError, Issue, PydanticValidator, SchemaValidationError, Validator
from restcontract.schemas import Invalid, Valid, as_validator, describe_type, expected_type_at, run_validator


class Inner(BaseModel):
    count: int


class Outer(BaseModel):
    name: str
    inner: Inner
    nickname: Optional[str]
    items: List[int] = Field(default_factory=list)


class Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=3, max_length=5)
    kind: Literal["post", "page"] = "post"


def positive(value: int) -> int:
    if value < 0:
        raise ValueError("must be positive")
    return value


PositiveInt = Annotated[int, AfterValidator(positive)]


class Color(str, Enum):
    RED = "red"
    BLUE = "blue"


class Paint(BaseModel):
    color: Color


def issues_for(schema, value):
    with pytest.raises(SchemaValidationError) as exc_info:
        PydanticValidator(schema).validate(value)
    return exc_info.value.issues


class TestIssueNormalization:
    """Pydantic error details map onto library-independent issues."""

    def test_missing_field(self):
        issue = issues_for(Outer, {"inner": {"count": 1}, "nickname": None})[0]
        assert issue.model_dump(exclude_none=True) == {
            "code": "invalid_type",
            "message": "Required",
            "path": ["name"],
            "expected": "string",
            "received": "undefined",
        }

    def test_missing_nested_field_resolves_expected_type(self):
        issue = issues_for(Outer, {"name": "a", "inner": {}, "nickname": None})[0]
        assert issue.path == ["inner", "count"]
        assert issue.expected == "integer"

    def test_missing_optional_field_names_non_null_type(self):
        issue = issues_for(Outer, {"name": "a", "inner": {"count": 1}})[0]
        assert issue.path == ["nickname"]
        assert issue.expected == "string"

    def test_wrong_type(self):
        issue = issues_for(Outer, {"name": 5, "inner": {"count": 1}, "nickname": None})[0]
        assert issue.code == "invalid_type"
        assert issue.expected == "string"
        assert issue.received == "integer"

    def test_unparseable_list_item(self):
        issue = issues_for(Outer, {"name": "a", "inner": {"count": 1}, "nickname": None, "items": [1, "x"]})[0]
        assert issue.path == ["items", 1]
        assert issue.code == "invalid_type"
        assert issue.expected == "integer"
        assert issue.received == "string"

    def test_issue_order_follows_the_schema(self):
        issues = issues_for(Outer, {})
        assert [issue.path[0] for issue in issues] == ["name", "inner", "nickname"]

    def test_too_small_and_too_big(self):
        assert issues_for(Strict, {"title": "ab"})[0].code == "too_small"
        assert issues_for(Strict, {"title": "abcdef"})[0].code == "too_big"

    def test_unrecognized_keys(self):
        issue = issues_for(Strict, {"title": "abc", "extra": 1})[0]
        assert issue.code == "unrecognized_keys"
        assert issue.path == ["extra"]

    def test_invalid_literal(self):
        assert issues_for(Strict, {"title": "abc", "kind": "note"})[0].code == "invalid_literal"

    def test_invalid_enum_value(self):
        assert issues_for(Paint, {"color": "green"})[0].code == "invalid_enum_value"

    def test_validator_errors_are_custom(self):
        issue = issues_for(PositiveInt, -1)[0]
        assert issue.code == "custom"
        assert "must be positive" in issue.message


class TestPydanticValidator:

    def test_validate_returns_parsed_value(self):
        assert PydanticValidator(Inner).validate({"count": "3"}) == Inner(count=3)

    def test_project_strips_undeclared_fields(self):
        assert PydanticValidator(Inner).project({"count": 3, "extra": True}) == {"count": 3}

    def test_project_accepts_model_instances(self):
        assert PydanticValidator(Inner).project(Inner(count=2)) == {"count": 2}

    def test_builtin_types(self):
        assert PydanticValidator(bool).validate(True) is True
        assert issues_for(bool, "not a bool")[0].expected == "boolean"

    def test_unsupported_schema_is_a_configuration_error(self):
        class Opaque:
            pass

        with pytest.raises(ConfigurationError, match="Cannot build a validator"):
            as_validator(Opaque)


class UpperCase:
    """A hand-written validator, no pydantic involved."""

    def validate(self, value):
        if not isinstance(value, str) or value != value.upper():
            raise SchemaValidationError([Issue(code="custom", message="Must be upper case", path=[])])
        return value

    def project(self, value):
        return self.validate(value)


class TestValidatorSeam:

    def test_custom_validators_are_used_as_is(self):
        validator = UpperCase()
        assert isinstance(validator, Validator)
        assert as_validator(validator) is validator

    def test_none_means_no_constraint(self):
        assert as_validator(None) is None
        assert run_validator(None, {"raw": 1}) == Valid({"raw": 1})

    def test_run_validator_collects_issues(self):
        outcome = run_validator(UpperCase(), "lower")
        assert isinstance(outcome, Invalid)
        assert outcome.error.name == "ValidationError"
        assert outcome.issues[0].message == "Must be upper case"


class TestHelpers:

    @pytest.mark.parametrize("value,expected", [
        (None, "null"),
        (True, "boolean"),
        (1, "integer"),
        (1.5, "number"),
        ("s", "string"),
        ({}, "object"),
        ([], "array"),
    ])
    def test_describe_type(self, value, expected):
        assert describe_type(value) == expected

    def test_expected_type_at_unknown_path(self):
        schema = PydanticValidator(Inner).json_schema
        assert expected_type_at(schema, ["count"]) == "integer"
        assert expected_type_at(schema, ["missing"]) is None
