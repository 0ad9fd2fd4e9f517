"""
CASE construction and clause management.

A case is an ordered list of WHEN clauses plus an ELSE result. Clauses are
tested in list order and the first one whose condition holds wins.
"""

import logging
from collections.abc import Callable

from rulebuilder.builder import naming
from rulebuilder.builder.conditions import make_condition
from rulebuilder.builder.expressions import default_expression, expression_type
from rulebuilder.catalog.registry import Catalog
from rulebuilder.core.errors import CannotRemoveLastClause
from rulebuilder.core.observability import track_mutation
from rulebuilder.domain.enums import Conjunction
from rulebuilder.model.nodes import (
    Case,
    ConditionGroup,
    Expression,
    RuleRefConditionGroup,
    WhenClause,
)

logger = logging.getLogger(__name__)


def _when_group(catalog: Catalog, position: int) -> ConditionGroup:
    scope = str(position)
    return ConditionGroup(
        name=naming.condition_name("", position),
        conjunction=Conjunction.AND,
        conditions=[make_condition(catalog, naming.condition_name(scope, 1))],
        auto_named=True,
    )


def _new_clause(catalog: Catalog, position: int, return_type: str) -> WhenClause:
    return WhenClause(
        when=_when_group(catalog, position),
        then=default_expression(return_type),
        result_name=naming.result_name(position),
        result_auto_named=True,
    )


def case_return_type(case: Case) -> str:
    """Type of the first result of ``case``."""
    return expression_type(case.when_clauses[0].then)


def make_case(catalog: Catalog, return_type: str) -> Case:
    """One clause ("Condition 1" / "Result 1") and an ELSE named "Default"."""
    return Case(
        when_clauses=[_new_clause(catalog, 1, return_type)],
        else_clause=default_expression(return_type),
        else_result_name=naming.ELSE_RESULT_NAME,
    )


def add_when_clause(catalog: Catalog, case: Case, return_type: str | None = None) -> Case:
    with track_mutation("add_when_clause"):
        position = len(case.when_clauses) + 1
        clause = _new_clause(catalog, position, return_type or case_return_type(case))
        logger.debug("Added when clause", extra={"position": position})
        return case.model_copy(update={"when_clauses": [*case.when_clauses, clause]})


def _renumber_clause(clause: WhenClause, position: int) -> WhenClause:
    update: dict = {}
    when = clause.when
    when_update: dict = {}
    if when.auto_named:
        when_update["name"] = naming.condition_name("", position)
    if isinstance(when, ConditionGroup):
        conditions = naming.renumber_children(when.conditions, str(position))
        if any(a is not b for a, b in zip(conditions, when.conditions)):
            when_update["conditions"] = conditions
    if when_update:
        update["when"] = when.model_copy(update=when_update)
    if clause.result_auto_named:
        update["result_name"] = naming.result_name(position)
    return clause.model_copy(update=update) if update else clause


def remove_when_clause(case: Case, index: int) -> Case:
    """
    Remove a clause and renumber the generated names of the ones after it.

    Raises:
        CannotRemoveLastClause: If ``case`` has a single clause
    """
    with track_mutation("remove_when_clause"):
        if len(case.when_clauses) == 1:
            raise CannotRemoveLastClause(
                "A case must keep at least one WHEN clause", details={"index": index}
            )
        if not 0 <= index < len(case.when_clauses):
            raise IndexError(f"when clause index {index} out of range")
        remaining = [c for i, c in enumerate(case.when_clauses) if i != index]
        clauses = [_renumber_clause(c, p) for p, c in enumerate(remaining, start=1)]
        logger.debug("Removed when clause", extra={"index": index})
        return case.model_copy(update={"when_clauses": clauses})


def evaluate_order(case: Case) -> list[WhenClause]:
    """Clauses in the order they are tested."""
    return list(case.when_clauses)


def first_match(
    case: Case, predicate: Callable[[ConditionGroup | RuleRefConditionGroup], bool]
) -> Expression | None:
    """
    Result of the first clause whose condition satisfies ``predicate``, else
    the ELSE result.
    """
    for clause in evaluate_order(case):
        if predicate(clause.when):
            return clause.then
    return case.else_clause


def _replace_clause(case: Case, index: int, **update) -> Case:
    if not 0 <= index < len(case.when_clauses):
        raise IndexError(f"when clause index {index} out of range")
    clauses = list(case.when_clauses)
    clauses[index] = clauses[index].model_copy(update=update)
    return case.model_copy(update={"when_clauses": clauses})


def set_result_name(case: Case, index: int, name: str) -> Case:
    with track_mutation("set_result_name"):
        return _replace_clause(case, index, result_name=name, result_auto_named=False)


def set_else_result_name(case: Case, name: str) -> Case:
    with track_mutation("set_else_result_name"):
        return case.model_copy(update={"else_result_name": name})


def set_then(case: Case, index: int, expr: Expression) -> Case:
    with track_mutation("set_then"):
        return _replace_clause(case, index, then=expr)


def set_when(case: Case, index: int, group: ConditionGroup | RuleRefConditionGroup) -> Case:
    with track_mutation("set_when"):
        return _replace_clause(case, index, when=group)


def set_else(case: Case, expr: Expression | None) -> Case:
    with track_mutation("set_else"):
        return case.model_copy(update={"else_clause": expr})


def reorder_when_clauses(case: Case, from_index: int, to_index: int) -> Case:
    """Move a clause; names travel with it unchanged."""
    with track_mutation("reorder_when_clauses"):
        clauses = list(case.when_clauses)
        if not 0 <= from_index < len(clauses) or not 0 <= to_index < len(clauses):
            raise IndexError(f"cannot move clause {from_index} to {to_index}")
        clauses.insert(to_index, clauses.pop(from_index))
        return case.model_copy(update={"when_clauses": clauses})
