"""
Local rule validation.

Walks the persisted JSON of a rule against the catalog and collects every
problem it finds as ``{"path": ..., "message": ...}`` with JSONPath-style
paths (``$.definition.conditions[0].left``). Checks cover:
- Field, function and operator references resolve in the catalog
- Field expressions still carry their field's declared type
- Expression group arity and operator symbols
- Condition operators are valid for the left operand and the right side
  matches the operator's cardinality
- Dynamic function argument bounds and fixed argument names
- Condition groups are not empty and do not nest too deep
- Rule-backed conditions and groups name a boolean rule and have no logic of
  their own
- Every case result has the type of the first one
- The declared return type matches what the definition evaluates to

Unlike the server-side validator this never raises while walking; callers
decide with ``ensure_valid`` whether problems are fatal.
"""

import logging
from typing import Any

from rulebuilder.catalog.registry import Catalog
from rulebuilder.compiler.canonicalizer import serialize_node
from rulebuilder.core.config import settings
from rulebuilder.core.errors import SchemaValidationFailed
from rulebuilder.core.observability import metrics
from rulebuilder.domain.enums import (
    NUMERIC_ARITHMETIC_SYMBOLS,
    Conjunction,
    NodeType,
    ReturnType,
    RuleStructure,
)
from rulebuilder.model.nodes import Rule

logger = logging.getLogger(__name__)

Problems = list[dict[str, str]]


def _problem(errors: Problems, path: str, message: str) -> None:
    errors.append({"path": path, "message": message})


def validate_rule(catalog: Catalog, rule: Rule | dict[str, Any]) -> Problems:
    """
    Validate a rule against the catalog.

    Args:
        catalog: Catalog the rule is checked against
        rule: A Rule or its persisted JSON (hydrated JSON is accepted too)

    Returns:
        Every problem found, in document order; empty when the rule is valid
    """
    data = serialize_node(rule) if isinstance(rule, Rule) else rule
    errors: Problems = []

    if not isinstance(data, dict):
        _problem(errors, "$", "Rule must be an object")
        return _record(errors)

    structure = data.get("structure")
    definition = data.get("definition")
    if structure not in {s.value for s in RuleStructure}:
        _problem(errors, "$.structure", f"Unknown rule structure '{structure}'")
        return _record(errors)
    if definition is None:
        _problem(errors, "$.definition", "Rule definition is missing")
        return _record(errors)

    path = "$.definition"
    if structure == RuleStructure.CONDITION.value:
        if not _is_type(definition, NodeType.CONDITION_GROUP):
            _problem(errors, path, "Definition of a condition rule must be a conditionGroup")
        else:
            _validate_condition_group(catalog, definition, path, 1, errors)
    elif structure == RuleStructure.CASE.value:
        _validate_case(catalog, definition, path, errors)
    else:
        _validate_expression(catalog, definition, path, errors)

    declared = data.get("returnType")
    evaluated = _definition_type(structure, definition)
    if evaluated is not None and declared != evaluated:
        _problem(
            errors,
            "$.returnType",
            f"Declared return type '{declared}' but the definition evaluates to '{evaluated}'",
        )

    return _record(errors)


def ensure_valid(catalog: Catalog, rule: Rule | dict[str, Any]) -> None:
    """
    Raises:
        SchemaValidationFailed: With the complete problem list, if any
    """
    errors = validate_rule(catalog, rule)
    if errors:
        raise SchemaValidationFailed(
            f"Rule has {len(errors)} validation problem(s)", errors=errors
        )


def _record(errors: Problems) -> Problems:
    if errors:
        metrics.validations_total.labels(source="local", status="invalid").inc()
        metrics.validation_errors_count.labels(source="local").observe(len(errors))
        logger.debug("Local validation failed", extra={"error_count": len(errors)})
    else:
        metrics.validations_total.labels(source="local", status="valid").inc()
    return errors


def _is_type(node: Any, node_type: NodeType) -> bool:
    return isinstance(node, dict) and node.get("type") == node_type.value


# =============================================================================
# Type evaluation over JSON
# =============================================================================


def _expression_type(node: Any) -> str | None:
    if not isinstance(node, dict):
        return None
    if node.get("type") == NodeType.EXPRESSION_GROUP.value:
        operators = node.get("operators") or []
        if any(op in NUMERIC_ARITHMETIC_SYMBOLS for op in operators):
            return ReturnType.NUMBER.value
        expressions = node.get("expressions") or []
        return _expression_type(expressions[0]) if expressions else None
    return node.get("returnType")


def _definition_type(structure: str, definition: Any) -> str | None:
    if structure == RuleStructure.CONDITION.value:
        return ReturnType.BOOLEAN.value
    if structure == RuleStructure.CASE.value:
        clauses = definition.get("whenClauses") if isinstance(definition, dict) else None
        if not clauses or not isinstance(clauses[0], dict):
            return None
        return _expression_type(clauses[0].get("then"))
    return _expression_type(definition)


# =============================================================================
# Expressions
# =============================================================================


def _validate_expression(catalog: Catalog, node: Any, path: str, errors: Problems) -> None:
    if not isinstance(node, dict):
        _problem(errors, path, "Expression must be an object")
        return

    node_type = node.get("type")
    return_type = node.get("returnType")
    if catalog.types and return_type not in catalog.types:
        _problem(errors, f"{path}.returnType", f"Unknown return type '{return_type}'")

    if node_type == NodeType.VALUE.value:
        if "value" not in node:
            _problem(errors, path, "Value expression is missing 'value'")
    elif node_type == NodeType.FIELD.value:
        _validate_field(catalog, node, path, errors)
    elif node_type == NodeType.FUNCTION.value:
        _validate_function(catalog, node, path, errors)
    elif node_type == NodeType.RULE_REF.value:
        if not node.get("id") and not node.get("uuid"):
            _problem(errors, path, "Rule reference must name a rule id or uuid")
    elif node_type == NodeType.EXPRESSION_GROUP.value:
        _validate_expression_group(catalog, node, path, errors)
    else:
        _problem(errors, f"{path}.type", f"Unknown expression type '{node_type}'")


def _validate_field(catalog: Catalog, node: dict, path: str, errors: Problems) -> None:
    field_path = node.get("field")
    field_def = catalog.resolve_field(field_path)
    if field_def is None:
        _problem(errors, f"{path}.field", f"Unknown field '{field_path}'")
        return
    if field_def.type != node.get("returnType"):
        _problem(
            errors,
            f"{path}.returnType",
            f"Field '{field_path}' is declared as '{field_def.type}' "
            f"but the expression says '{node.get('returnType')}'",
        )


def _validate_function(catalog: Catalog, node: dict, path: str, errors: Problems) -> None:
    call = node.get("function")
    if not isinstance(call, dict):
        _problem(errors, f"{path}.function", "Function call must be an object")
        return

    name = call.get("name")
    function_def = catalog.resolve_function(name)
    if function_def is None:
        _problem(errors, f"{path}.function.name", f"Unknown function '{name}'")
        return
    if function_def.return_type != node.get("returnType"):
        _problem(
            errors,
            f"{path}.returnType",
            f"Function '{name}' returns '{function_def.return_type}' "
            f"but the expression says '{node.get('returnType')}'",
        )

    args = call.get("args") or []
    args_path = f"{path}.function.args"
    if not isinstance(args, list):
        _problem(errors, args_path, "Function arguments must be a list")
        return

    if function_def.is_dynamic:
        spec = function_def.dynamic_args
        if not spec.allows(len(args)):
            upper = "unbounded" if spec.max_args is None else spec.max_args
            _problem(
                errors,
                args_path,
                f"Function {name} expects {spec.min_args}-{upper} arguments, got {len(args)}",
            )
        for i, arg in enumerate(args):
            arg_path = f"{args_path}[{i}]"
            _validate_expression(catalog, arg, arg_path, errors)
            arg_type = _expression_type(arg)
            if arg_type is not None and arg_type != spec.arg_type:
                _problem(
                    errors,
                    arg_path,
                    f"Argument {i + 1} of {name} must be '{spec.arg_type}', got '{arg_type}'",
                )
        return

    seen: set[str] = set()
    for i, arg in enumerate(args):
        arg_path = f"{args_path}[{i}]"
        if not isinstance(arg, dict) or "name" not in arg:
            _problem(errors, arg_path, f"Arguments of {name} must be named")
            continue
        arg_name = arg["name"]
        arg_def = function_def.args.get(arg_name)
        if arg_def is None:
            _problem(errors, f"{arg_path}.name", f"Function {name} has no argument '{arg_name}'")
            continue
        seen.add(arg_name)
        _validate_expression(catalog, arg.get("value"), f"{arg_path}.value", errors)
        arg_type = _expression_type(arg.get("value"))
        if arg_type is not None and arg_type != arg_def.type:
            _problem(
                errors,
                f"{arg_path}.value",
                f"Argument '{arg_name}' of {name} must be '{arg_def.type}', got '{arg_type}'",
            )
    for missing in (n for n in function_def.args if n not in seen):
        _problem(errors, args_path, f"Function {name} is missing argument '{missing}'")


def _validate_expression_group(catalog: Catalog, node: dict, path: str, errors: Problems) -> None:
    expressions = node.get("expressions")
    operators = node.get("operators")
    if not isinstance(expressions, list) or not expressions:
        _problem(errors, f"{path}.expressions", "Expression group needs at least one expression")
        return
    if not isinstance(operators, list) or len(operators) != len(expressions) - 1:
        count = len(operators) if isinstance(operators, list) else 0
        _problem(
            errors,
            f"{path}.operators",
            f"Expression group with {len(expressions)} expressions needs "
            f"{len(expressions) - 1} operators, got {count}",
        )
        operators = operators if isinstance(operators, list) else []

    for i, symbol in enumerate(operators):
        if catalog.expression_operators and catalog.expression_operator_by_symbol(symbol) is None:
            _problem(errors, f"{path}.operators[{i}]", f"Unknown expression operator '{symbol}'")
    for i, expr in enumerate(expressions):
        _validate_expression(catalog, expr, f"{path}.expressions[{i}]", errors)

    inferred = _expression_type(node)
    if inferred is not None and node.get("returnType") != inferred:
        _problem(
            errors,
            f"{path}.returnType",
            f"Expression group evaluates to '{inferred}' but says '{node.get('returnType')}'",
        )


# =============================================================================
# Conditions
# =============================================================================


def _validate_rule_backed(
    node: dict, path: str, context: str, own_keys: tuple[str, ...], errors: Problems
) -> None:
    clash = [key for key in own_keys if node.get(key) is not None]
    if clash:
        _problem(
            errors, path, f"A {context} backed by ruleRef cannot also have {'/'.join(clash)}"
        )

    ref = node["ruleRef"]
    ref_path = f"{path}.ruleRef"
    if not isinstance(ref, dict):
        _problem(errors, ref_path, "Rule reference must be an object")
        return
    if not ref.get("id") and not ref.get("uuid"):
        _problem(errors, ref_path, "Rule reference must name a rule id or uuid")
    return_type = ref.get("returnType")
    if return_type != ReturnType.BOOLEAN.value:
        _problem(
            errors,
            f"{ref_path}.returnType",
            f"Rule references in {context} context must return boolean, got '{return_type}'",
        )


def _validate_condition(catalog: Catalog, node: dict, path: str, errors: Problems) -> None:
    if not node.get("name"):
        _problem(errors, f"{path}.name", "Condition must have a name")
    if node.get("ruleRef") is not None:
        _validate_rule_backed(node, path, "condition", ("left", "operator", "right"), errors)
        return

    left = node.get("left")
    _validate_expression(catalog, left, f"{path}.left", errors)

    key = node.get("operator")
    op = catalog.resolve_operator(key)
    if op is None:
        _problem(errors, f"{path}.operator", f"Unknown operator '{key}'")
        return

    left_type = _expression_type(left)
    if left_type is not None and key not in catalog.operators_for_type(left_type):
        _problem(
            errors,
            f"{path}.operator",
            f"Operator '{key}' is not valid for type '{left_type}'",
        )

    right = node.get("right")
    right_path = f"{path}.right"
    if op.is_dynamic or op.cardinality > 1:
        if not isinstance(right, list):
            _problem(errors, right_path, f"Operator '{key}' requires a list of values")
            return
        lower, upper = op.lower_bound, op.upper_bound
        if len(right) < lower or (upper is not None and len(right) > upper):
            expected = str(lower) if lower == upper else f"{lower}-{upper or 'unbounded'}"
            _problem(
                errors,
                right_path,
                f"Operator '{key}' requires {expected} values, got {len(right)}",
            )
        for i, value in enumerate(right):
            _validate_expression(catalog, value, f"{right_path}[{i}]", errors)
    elif op.cardinality == 0:
        if right is not None:
            _problem(errors, right_path, f"Operator '{key}' takes no right-hand value")
    else:
        if right is None or isinstance(right, list):
            _problem(errors, right_path, f"Operator '{key}' requires a single value")
            return
        _validate_expression(catalog, right, right_path, errors)


def _validate_condition_group(
    catalog: Catalog, node: dict, path: str, depth: int, errors: Problems
) -> None:
    if depth > settings.max_condition_depth:
        _problem(
            errors,
            path,
            f"Condition groups nest deeper than {settings.max_condition_depth} levels",
        )
        return

    if node.get("ruleRef") is not None:
        _validate_rule_backed(
            node, path, "conditionGroup", ("conjunction", "conditions"), errors
        )
        return

    conjunction = node.get("conjunction")
    if conjunction not in {c.value for c in Conjunction}:
        _problem(errors, f"{path}.conjunction", f"Unknown conjunction '{conjunction}'")

    children = node.get("conditions")
    if not isinstance(children, list):
        _problem(errors, f"{path}.conditions", "'conditions' must be a list")
        return
    if not children:
        _problem(errors, f"{path}.conditions", "Condition group cannot be empty")
        return

    for i, child in enumerate(children):
        child_path = f"{path}.conditions[{i}]"
        if _is_type(child, NodeType.CONDITION_GROUP):
            _validate_condition_group(catalog, child, child_path, depth + 1, errors)
        elif _is_type(child, NodeType.CONDITION):
            _validate_condition(catalog, child, child_path, errors)
        else:
            _problem(errors, child_path, "Expected a condition or conditionGroup")


# =============================================================================
# Case
# =============================================================================


def _validate_case(catalog: Catalog, node: Any, path: str, errors: Problems) -> None:
    if not isinstance(node, dict):
        _problem(errors, path, "Case definition must be an object")
        return

    clauses = node.get("whenClauses")
    if not isinstance(clauses, list) or not clauses:
        _problem(errors, f"{path}.whenClauses", "Case needs at least one WHEN clause")
        return

    case_type = _definition_type(RuleStructure.CASE.value, node)
    for i, clause in enumerate(clauses):
        clause_path = f"{path}.whenClauses[{i}]"
        if not isinstance(clause, dict):
            _problem(errors, clause_path, "WHEN clause must be an object")
            continue
        when = clause.get("when")
        if _is_type(when, NodeType.CONDITION_GROUP):
            _validate_condition_group(catalog, when, f"{clause_path}.when", 1, errors)
        else:
            _problem(errors, f"{clause_path}.when", "WHEN must be a conditionGroup")
        _validate_expression(catalog, clause.get("then"), f"{clause_path}.then", errors)
        _check_result_type(clause.get("then"), case_type, f"{clause_path}.then", errors)
        if not clause.get("resultName"):
            _problem(errors, f"{clause_path}.resultName", "WHEN clause must name its result")

    if node.get("elseClause") is not None:
        _validate_expression(catalog, node["elseClause"], f"{path}.elseClause", errors)
        _check_result_type(node["elseClause"], case_type, f"{path}.elseClause", errors)


def _check_result_type(result: Any, case_type: str | None, path: str, errors: Problems) -> None:
    result_type = _expression_type(result)
    if case_type is not None and result_type is not None and result_type != case_type:
        _problem(
            errors, path, f"Result is '{result_type}' but the case returns '{case_type}'"
        )
