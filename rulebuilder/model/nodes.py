"""
Rule AST node models.

Every node is a frozen pydantic model whose aliases are the persisted camelCase
keys, so ``model_dump(by_alias=True, mode="json")`` produces the rule
definition JSON exactly. Mutations never touch a node in place: the builder
functions return copies made with ``model_copy(update=...)``.

Presentation state (ids, expansion, editing flags) is not part of these models.
Unknown keys are ignored on input, so a hydrated editor tree parses to the same
AST as its stripped form.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    SerializerFunctionWrapHandler,
    Tag,
    model_serializer,
    model_validator,
)
from pydantic.alias_generators import to_camel

from rulebuilder.domain.enums import Conjunction, RuleStructure


class RuleNode(BaseModel):
    model_config = ConfigDict(
        frozen=True, populate_by_name=True, alias_generator=to_camel, extra="ignore"
    )


def _without(data: dict[str, Any], *names: str) -> dict[str, Any]:
    """Drop fields by attribute name, whichever key spelling the dump used."""
    for name in names:
        data.pop(name, None)
        data.pop(to_camel(name), None)
    return data


# =============================================================================
# Expressions
# =============================================================================


class ValueExpr(RuleNode):
    type: Literal["value"] = "value"
    return_type: str
    value: Any = None


class FieldExpr(RuleNode):
    type: Literal["field"] = "field"
    return_type: str
    field: str


class FunctionArg(RuleNode):
    """Named argument of a fixed-arg function call."""

    name: str
    value: Expression


class FunctionCall(RuleNode):
    """
    ``name`` is the dotted catalog path. ``args`` holds named ``FunctionArg``s
    for fixed functions and bare expressions for dynamic ones.
    """

    name: str
    args: Union[list[FunctionArg], list[Expression]] = Field(default_factory=list)


class FunctionExpr(RuleNode):
    type: Literal["function"] = "function"
    return_type: str
    function: FunctionCall


class RuleRefExpr(RuleNode):
    """
    Reference to another stored rule; ``return_type`` and ``rule_type`` are
    cached copies of the target's. ``ruleType`` is only written when known.
    """

    type: Literal["ruleRef"] = "ruleRef"
    return_type: str
    id: str | None = None
    uuid: str | None = None
    version: int | None = None
    rule_type: str | None = None

    @model_serializer(mode="wrap")
    def serialize(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        return _without(data, "rule_type") if self.rule_type is None else data


class ExpressionGroup(RuleNode):
    """
    Operands joined by binary operator symbols, evaluated left to right.

    Invariant: ``len(expressions) == len(operators) + 1 >= 1``.
    """

    type: Literal["expressionGroup"] = "expressionGroup"
    return_type: str
    expressions: list[Expression]
    operators: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_arity(self) -> ExpressionGroup:
        if not self.expressions:
            raise ValueError("expressionGroup must contain at least one expression")
        if len(self.expressions) != len(self.operators) + 1:
            raise ValueError(
                f"expressionGroup has {len(self.expressions)} expressions but "
                f"{len(self.operators)} operators"
            )
        return self


Expression = Annotated[
    Union[ValueExpr, FieldExpr, FunctionExpr, RuleRefExpr, ExpressionGroup],
    Field(discriminator="type"),
]

EXPRESSION_TYPES = (ValueExpr, FieldExpr, FunctionExpr, RuleRefExpr, ExpressionGroup)


# =============================================================================
# Conditions
# =============================================================================


class Condition(RuleNode):
    """
    ``left <operator> right``. ``right`` is None for cardinality 0, a single
    expression for cardinality 1 and a list otherwise.
    """

    type: Literal["condition"] = "condition"
    return_type: Literal["boolean"] = "boolean"
    name: str
    left: Expression
    operator: str
    right: Union[Expression, list[Expression], None] = None
    # True while the name is still the generated "Condition N"
    auto_named: bool = Field(default=False, exclude=True)


class ConditionGroup(RuleNode):
    type: Literal["conditionGroup"] = "conditionGroup"
    return_type: Literal["boolean"] = "boolean"
    name: str
    conjunction: Conjunction = Conjunction.AND
    negated: bool = Field(default=False, alias="not")
    conditions: list[ConditionChild] = Field(default_factory=list)
    auto_named: bool = Field(default=False, exclude=True)


class RuleRef(RuleNode):
    """
    Stored rule standing in for a condition or a group.

    Persisted under the node's ``ruleRef`` key without a ``type`` of its own.
    Only boolean rules fit there; the validator reports any other
    ``return_type``.
    """

    id: str | None = None
    uuid: str | None = None
    version: int | None = 1
    return_type: str = "boolean"
    rule_type: str | None = None

    @model_serializer(mode="wrap")
    def serialize(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        return _without(data, "rule_type") if self.rule_type is None else data


def _reject_keys(data: Any, kind: str, keys: tuple[str, ...]) -> Any:
    if isinstance(data, dict):
        clash = [key for key in keys if data.get(key) is not None]
        if clash:
            raise ValueError(f"a {kind} backed by ruleRef cannot also have {'/'.join(clash)}")
    return data


class RuleRefCondition(RuleNode):
    """A condition slot whose truth value is another rule's result."""

    type: Literal["condition"] = "condition"
    return_type: Literal["boolean"] = "boolean"
    name: str
    rule_ref: RuleRef
    auto_named: bool = Field(default=False, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def reject_comparison(cls, data: Any) -> Any:
        return _reject_keys(data, "condition", ("left", "operator", "right"))


class RuleRefConditionGroup(RuleNode):
    """A group slot whose truth value is another rule's result."""

    type: Literal["conditionGroup"] = "conditionGroup"
    return_type: Literal["boolean"] = "boolean"
    name: str
    negated: bool = Field(default=False, alias="not")
    rule_ref: RuleRef
    auto_named: bool = Field(default=False, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def reject_children(cls, data: Any) -> Any:
        return _reject_keys(data, "conditionGroup", ("conjunction", "conditions"))

    @model_serializer(mode="wrap")
    def serialize(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        return data if self.negated else _without(data, "negated", "not")


def _condition_tag(value: Any) -> str | None:
    """Union tag of a condition-tree node: its ``type``, suffixed ``Ref`` when rule-backed."""
    if isinstance(value, dict):
        node_type = value.get("type")
        if not isinstance(node_type, str):
            return None
        backed = value.get("ruleRef") is not None or value.get("rule_ref") is not None
        return f"{node_type}Ref" if backed else node_type
    if isinstance(value, (RuleRefCondition, RuleRefConditionGroup)):
        return f"{value.type}Ref"
    return getattr(value, "type", None)


ConditionChild = Annotated[
    Union[
        Annotated[Condition, Tag("condition")],
        Annotated[ConditionGroup, Tag("conditionGroup")],
        Annotated[RuleRefCondition, Tag("conditionRef")],
        Annotated[RuleRefConditionGroup, Tag("conditionGroupRef")],
    ],
    Discriminator(_condition_tag),
]

GroupSlot = Annotated[
    Union[
        Annotated[ConditionGroup, Tag("conditionGroup")],
        Annotated[RuleRefConditionGroup, Tag("conditionGroupRef")],
    ],
    Discriminator(_condition_tag),
]

CONDITION_GROUP_TYPES = (ConditionGroup, RuleRefConditionGroup)


# =============================================================================
# Case
# =============================================================================


class WhenClause(RuleNode):
    when: GroupSlot
    then: Expression
    result_name: str
    result_auto_named: bool = Field(default=False, exclude=True)


class Case(RuleNode):
    """Clauses are tested in list order; the first true one wins."""

    when_clauses: list[WhenClause] = Field(min_length=1)
    else_clause: Expression | None = None
    else_result_name: str = "Default"


# =============================================================================
# Rule root
# =============================================================================


class RuleMetadata(RuleNode):
    id: str | None = None
    description: str | None = None


def _definition_tag(value: Any) -> str | None:
    if isinstance(value, dict):
        if "whenClauses" in value or "when_clauses" in value:
            return "case"
        return _condition_tag(value)
    if isinstance(value, Case):
        return "case"
    return _condition_tag(value)


Definition = Annotated[
    Union[
        Annotated[ConditionGroup, Tag("conditionGroup")],
        Annotated[RuleRefConditionGroup, Tag("conditionGroupRef")],
        Annotated[Case, Tag("case")],
        Annotated[ValueExpr, Tag("value")],
        Annotated[FieldExpr, Tag("field")],
        Annotated[FunctionExpr, Tag("function")],
        Annotated[RuleRefExpr, Tag("ruleRef")],
        Annotated[ExpressionGroup, Tag("expressionGroup")],
    ],
    Discriminator(_definition_tag),
]


class Rule(RuleNode):
    """
    Root of a rule.

    Persisted keys are exactly ``structure, returnType, ruleType, uuId,
    version, metadata, definition``; ``uuId`` and ``version`` are assigned by
    the storage service.
    """

    structure: RuleStructure
    return_type: str
    rule_type: str
    uuid: str | None = Field(default=None, alias="uuId")
    version: int | None = None
    metadata: RuleMetadata = Field(default_factory=RuleMetadata)
    definition: Definition

    @model_validator(mode="after")
    def validate_definition_shape(self) -> Rule:
        expected = {
            RuleStructure.CONDITION: CONDITION_GROUP_TYPES,
            RuleStructure.CASE: (Case,),
            RuleStructure.EXPRESSION: EXPRESSION_TYPES,
        }[self.structure]
        if not isinstance(self.definition, expected):
            raise ValueError(
                f"definition of a '{self.structure.value}' rule cannot be "
                f"'{getattr(self.definition, 'type', 'case')}'"
            )
        return self


FunctionArg.model_rebuild()
FunctionCall.model_rebuild()
FunctionExpr.model_rebuild()
ExpressionGroup.model_rebuild()
Condition.model_rebuild()
ConditionGroup.model_rebuild()
RuleRefCondition.model_rebuild()
RuleRefConditionGroup.model_rebuild()
WhenClause.model_rebuild()
Case.model_rebuild()
Rule.model_rebuild()
