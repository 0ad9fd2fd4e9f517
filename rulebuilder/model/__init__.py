"""
Rule AST data model.

Frozen pydantic nodes for expressions, conditions, condition groups (either of
which may be backed by a stored boolean rule), case and the rule root. See
``rulebuilder.model.nodes``.
"""

from rulebuilder.model.nodes import (
    CONDITION_GROUP_TYPES,
    EXPRESSION_TYPES,
    Case,
    Condition,
    ConditionChild,
    ConditionGroup,
    Expression,
    ExpressionGroup,
    FieldExpr,
    FunctionArg,
    FunctionCall,
    FunctionExpr,
    Rule,
    RuleMetadata,
    RuleRef,
    RuleRefCondition,
    RuleRefConditionGroup,
    RuleRefExpr,
    ValueExpr,
    WhenClause,
)

__all__ = [
    "CONDITION_GROUP_TYPES",
    "EXPRESSION_TYPES",
    "Case",
    "Condition",
    "ConditionChild",
    "ConditionGroup",
    "Expression",
    "ExpressionGroup",
    "FieldExpr",
    "FunctionArg",
    "FunctionCall",
    "FunctionExpr",
    "Rule",
    "RuleMetadata",
    "RuleRef",
    "RuleRefCondition",
    "RuleRefConditionGroup",
    "RuleRefExpr",
    "ValueExpr",
    "WhenClause",
]
