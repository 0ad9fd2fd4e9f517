"""
Catalog definitions: fields, functions, operators and scalar types.

All catalog models are frozen; a loaded catalog is a read-only snapshot shared by
every editing session.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CatalogModel(BaseModel):
    model_config = ConfigDict(
        frozen=True, populate_by_name=True, alias_generator=to_camel, extra="ignore"
    )


class FixedArg(CatalogModel):
    """One named argument of a fixed-arg function."""

    label: str
    type: str
    default_value: Any = None


class DynamicArgs(CatalogModel):
    """Variable-length argument descriptor (e.g. MATH.SUM takes 2..10 numbers)."""

    arg_type: str
    min_args: int = 0
    max_args: int | None = None
    default_value: Any = None

    @model_validator(mode="after")
    def validate_bounds(self) -> DynamicArgs:
        if self.min_args < 0:
            raise ValueError("minArgs cannot be negative")
        if self.max_args is not None and self.max_args < self.min_args:
            raise ValueError(
                f"maxArgs ({self.max_args}) must be >= minArgs ({self.min_args})"
            )
        return self

    def allows(self, count: int) -> bool:
        """Whether a call with ``count`` arguments is within bounds."""
        if count < self.min_args:
            return False
        return self.max_args is None or count <= self.max_args


class FieldDef(CatalogModel):
    kind: Literal["field"] = "field"
    label: str
    type: str


class FunctionDef(CatalogModel):
    """
    A callable function leaf.

    Exactly one of ``args`` (ordered name -> FixedArg map) or ``dynamic_args``
    is set. A function declaring neither is a zero-argument fixed function.
    """

    kind: Literal["function"] = "function"
    label: str
    return_type: str
    args: dict[str, FixedArg] | None = None
    dynamic_args: DynamicArgs | None = None

    @model_validator(mode="before")
    @classmethod
    def default_to_no_args(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        dynamic = data.get("dynamicArgs", data.get("dynamic_args"))
        if data.get("args") is None and dynamic is None:
            return {**data, "args": {}}
        return data

    @model_validator(mode="after")
    def validate_arg_shape(self) -> FunctionDef:
        if self.args is not None and self.dynamic_args is not None:
            raise ValueError(f"Function '{self.label}' declares both args and dynamicArgs")
        return self

    @property
    def is_dynamic(self) -> bool:
        return self.dynamic_args is not None


class Category(CatalogModel):
    """Internal catalog node; never selectable itself."""

    kind: Literal["category"] = "category"
    label: str
    children: dict[str, CatalogNode] = Field(default_factory=dict)


CatalogNode = Annotated[Union[Category, FieldDef, FunctionDef], Field(discriminator="kind")]

Category.model_rebuild()


class OperatorDef(CatalogModel):
    """
    A condition operator.

    ``cardinality`` is the number of right-hand operands: 0 (IS NULL),
    1 (EQUALS) or N > 1 (BETWEEN). Dynamic operators (IN) declare
    ``default_cardinality`` plus optional min/max bounds instead.
    """

    label: str
    cardinality: int = 1
    default_cardinality: int | None = None
    min_cardinality: int | None = None
    max_cardinality: int | None = None

    @property
    def is_dynamic(self) -> bool:
        return self.default_cardinality is not None

    @property
    def initial_cardinality(self) -> int:
        """Right-hand operand count for a freshly selected operator."""
        if self.default_cardinality is not None:
            return self.default_cardinality
        return self.cardinality

    @property
    def lower_bound(self) -> int:
        if self.is_dynamic:
            return self.min_cardinality if self.min_cardinality is not None else 1
        return self.cardinality

    @property
    def upper_bound(self) -> int | None:
        if self.is_dynamic:
            return self.max_cardinality
        return self.cardinality


class ExpressionOperatorDef(CatalogModel):
    """Arithmetic/concatenation operator; groups store its ``symbol``."""

    symbol: str
    label: str


class TypeDef(CatalogModel):
    label: str | None = None
    valid_condition_operators: tuple[str, ...] = ()
    default_condition_operator: str | None = None
    valid_expression_operators: tuple[str, ...] = ()
    default_expression_operator: str | None = None
