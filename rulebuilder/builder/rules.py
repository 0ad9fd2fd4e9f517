"""
Rule root construction and type consistency checks.
"""

import logging
from dataclasses import dataclass

from rulebuilder.builder import naming
from rulebuilder.builder.case import case_return_type, make_case
from rulebuilder.builder.expressions import default_expression, expression_type
from rulebuilder.builder.groups import make_condition_group
from rulebuilder.catalog.registry import Catalog
from rulebuilder.core.config import settings
from rulebuilder.core.observability import track_mutation
from rulebuilder.domain.enums import ReturnType, RuleStructure
from rulebuilder.model.nodes import CONDITION_GROUP_TYPES, Case, Rule, RuleMetadata, RuleRefExpr

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TypeMismatch:
    declared: str
    evaluated: str

    @property
    def message(self) -> str:
        return (
            f"Declared return type '{self.declared}' but the definition "
            f"evaluates to '{self.evaluated}'"
        )


def _initial_definition(catalog: Catalog, structure: RuleStructure, return_type: str):
    if structure == RuleStructure.CONDITION:
        return make_condition_group(catalog, naming.ROOT_GROUP_NAME, size=1, auto_named=False)
    if structure == RuleStructure.CASE:
        return make_case(catalog, return_type)
    return default_expression(return_type)


def _return_type_for(structure: RuleStructure, return_type: str | None) -> str:
    if structure == RuleStructure.CONDITION:
        return ReturnType.BOOLEAN.value
    return return_type or settings.default_return_type


def new_rule(
    catalog: Catalog,
    structure: RuleStructure | str,
    rule_type: str | None = None,
    return_type: str | None = None,
) -> Rule:
    """
    A fresh, unsaved rule with catalog defaults.

    Condition rules always return boolean and start with a "Main Condition"
    group holding one condition. Case and expression rules default to the
    configured return type.
    """
    structure = RuleStructure(structure)
    resolved_type = _return_type_for(structure, return_type)
    return Rule(
        structure=structure,
        return_type=resolved_type,
        rule_type=rule_type or settings.default_rule_type,
        metadata=RuleMetadata(),
        definition=_initial_definition(catalog, structure, resolved_type),
    )


def change_structure(catalog: Catalog, rule: Rule, structure: RuleStructure | str) -> Rule:
    """Switch structure and start over with a default definition of the new kind."""
    with track_mutation("change_structure"):
        structure = RuleStructure(structure)
        keep = rule.return_type if rule.structure != RuleStructure.CONDITION else None
        return_type = _return_type_for(structure, keep)
        logger.debug(
            "Rule structure changed",
            extra={"from_structure": rule.structure.value, "to_structure": structure.value},
        )
        return rule.model_copy(
            update={
                "structure": structure,
                "return_type": return_type,
                "definition": _initial_definition(catalog, structure, return_type),
            }
        )


def evaluated_type(rule: Rule) -> str:
    definition = rule.definition
    if isinstance(definition, CONDITION_GROUP_TYPES):
        return ReturnType.BOOLEAN.value
    if isinstance(definition, Case):
        return case_return_type(definition)
    return expression_type(definition)


def check_type_consistency(rule: Rule) -> TypeMismatch | None:
    """Declared vs evaluated return type of the rule, or None when they agree."""
    evaluated = evaluated_type(rule)
    if evaluated != rule.return_type:
        return TypeMismatch(declared=rule.return_type, evaluated=evaluated)
    return None


def check_rule_ref(expr: RuleRefExpr, expected_type: str) -> TypeMismatch | None:
    """
    Mismatch between a referenced rule's cached return type and the type its
    position requires. The cached type is not refreshed here.
    """
    if expr.return_type != expected_type:
        return TypeMismatch(declared=expected_type, evaluated=expr.return_type)
    return None
