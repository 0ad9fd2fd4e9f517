"""
Domain enums for the rule AST.

These enums provide type-safe representations of the string tags used in the
persisted rule JSON and are used throughout the package for validation and
dispatch.
"""

from enum import Enum


class RuleStructure(str, Enum):
    """Shape of a rule's definition - matches the persisted ``structure`` key."""

    CONDITION = "condition"
    CASE = "case"
    EXPRESSION = "expression"


class ReturnType(str, Enum):
    """
    Scalar types of the rule language.
    Constraint: every expression's ``returnType`` must be one of these values.
    """

    NUMBER = "number"
    TEXT = "text"
    DATE = "date"
    BOOLEAN = "boolean"


class Conjunction(str, Enum):
    """How the children of a condition group are combined."""

    AND = "AND"
    OR = "OR"


class NodeType(str, Enum):
    """
    Discriminator values of AST nodes.
    Used as the ``type`` key in the persisted JSON.
    """

    VALUE = "value"
    FIELD = "field"
    FUNCTION = "function"
    RULE_REF = "ruleRef"
    EXPRESSION_GROUP = "expressionGroup"
    CONDITION = "condition"
    CONDITION_GROUP = "conditionGroup"


# Default literal per scalar type, used whenever a new operand is synthesized
DEFAULT_VALUES: dict[str, object] = {
    ReturnType.NUMBER.value: 0,
    ReturnType.TEXT.value: "",
    ReturnType.BOOLEAN.value: False,
    ReturnType.DATE.value: None,
}

# Arithmetic symbols that force a numeric result type (legacy inference policy)
NUMERIC_ARITHMETIC_SYMBOLS = frozenset({"+", "-", "*", "/"})
