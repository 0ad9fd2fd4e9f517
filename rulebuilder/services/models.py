"""Response models for the external rule services."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class ServiceModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="ignore")


class ValidationProblem(ServiceModel):
    path: str = "$"
    message: str


class ValidationReport(ServiceModel):
    """
    Result of ``POST /rules/validate``.

    Older service versions omit ``valid``; it is then derived from the error
    list.
    """

    valid: bool
    errors: list[ValidationProblem] = Field(default_factory=list)
    schema_filename: str | None = None
    schema_version: str | None = None
    error_count: int | None = None

    @model_validator(mode="before")
    @classmethod
    def derive_valid(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("valid") is None:
            return {**data, "valid": not data.get("errors")}
        return data

    def as_problems(self) -> list[dict[str, str]]:
        return [problem.model_dump() for problem in self.errors]


class SqlResult(ServiceModel):
    """Result of ``POST /rules/to-sql``."""

    sql: str | None = None
    errors: list[ValidationProblem] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def normalize_errors(cls, data: Any) -> Any:
        # The generator reports plain strings as well as {path, message} objects
        if isinstance(data, dict) and isinstance(data.get("errors"), list):
            errors = [
                {"message": e} if isinstance(e, str) else e for e in data["errors"]
            ]
            return {**data, "errors": errors}
        return data


class SaveResult(ServiceModel):
    """Result of creating or updating a rule; the server assigns uuid and version."""

    uuid: str
    version: int
    rule_id: str | None = None
    rule: dict[str, Any] | None = None
    message: str | None = None
