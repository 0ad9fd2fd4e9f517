"""
Condition construction and operator/cardinality reconciliation.

The right-hand side of a condition is shaped by its operator's cardinality:
nothing for 0, one expression for 1, a list for N > 1 and always a list for
dynamic operators (IN). Switching operators keeps as many existing right
values as fit and pads with typed defaults.
"""

import logging
from typing import Union

from rulebuilder.builder.expressions import default_expression, expression_type, make_field
from rulebuilder.catalog.models import OperatorDef
from rulebuilder.catalog.registry import Catalog
from rulebuilder.core.config import settings
from rulebuilder.core.errors import (
    CardinalityOutOfRange,
    IncompatibleType,
    UnknownOperator,
)
from rulebuilder.core.observability import track_mutation
from rulebuilder.model.nodes import Condition, Expression

logger = logging.getLogger(__name__)

Right = Union[Expression, list[Expression], None]


def right_values(right: Right) -> list[Expression]:
    """The right side as a list, whatever its stored shape."""
    if right is None:
        return []
    if isinstance(right, list):
        return list(right)
    return [right]


def _resolve_operator(catalog: Catalog, key: str) -> OperatorDef:
    op = catalog.resolve_operator(key)
    if op is None:
        raise UnknownOperator(f"Unknown condition operator '{key}'", details={"operator": key})
    return op


def _check_operator_for_type(catalog: Catalog, key: str, type_name: str) -> None:
    valid = catalog.operators_for_type(type_name)
    if key not in valid:
        raise IncompatibleType(
            f"Operator '{key}' is not valid for type '{type_name}'",
            details={"operator": key, "type": type_name, "valid": valid},
        )


def _target_count(op: OperatorDef, current: int) -> int:
    if not op.is_dynamic:
        return op.cardinality
    count = current or op.initial_cardinality
    count = max(count, op.lower_bound)
    if op.upper_bound is not None:
        count = min(count, op.upper_bound)
    return count


def shape_right(op: OperatorDef, values: list[Expression]) -> Right:
    if op.is_dynamic:
        return values
    if op.cardinality == 0:
        return None
    if op.cardinality == 1:
        return values[0]
    return values


def synthesize_right(op: OperatorDef, type_name: str) -> Right:
    """Fresh default right side for ``op`` on a left operand of ``type_name``."""
    count = _target_count(op, 0)
    return shape_right(op, [default_expression(type_name) for _ in range(count)])


def make_condition(
    catalog: Catalog,
    name: str,
    return_type: str = "number",
    field: str | None = None,
    auto_named: bool = True,
) -> Condition:
    """
    Build a default condition.

    The left side is ``field`` or the first catalog field of ``return_type``,
    the operator is the type's default and the right side holds default
    literals shaped by the operator's cardinality.

    Raises:
        UnknownField: If the chosen field does not resolve
        UnknownOperator: If the default operator is missing from the catalog
    """
    path = field or catalog.first_field(return_type) or settings.default_field_path
    left = make_field(catalog, path)
    left_type = left.return_type
    key = catalog.default_condition_operator(left_type) or settings.default_condition_operator
    op = _resolve_operator(catalog, key)
    return Condition(
        name=name,
        left=left,
        operator=key,
        right=synthesize_right(op, left_type),
        auto_named=auto_named,
    )


def set_operator(catalog: Catalog, condition: Condition, key: str) -> Condition:
    """
    Switch the operator and reconcile ``right`` to the new cardinality.

    Existing right values are kept in order up to the new count; missing
    positions are padded with defaults of the left operand's type. The old
    cardinality is read from the shape of ``right``.

    Raises:
        UnknownOperator: If ``key`` is not a catalog operator
        IncompatibleType: If ``key`` is not valid for the left operand's type
    """
    with track_mutation("set_operator"):
        op = _resolve_operator(catalog, key)
        left_type = expression_type(condition.left)
        _check_operator_for_type(catalog, key, left_type)

        current = right_values(condition.right)
        target = _target_count(op, len(current))
        kept = current[:target]
        padded = kept + [default_expression(left_type) for _ in range(target - len(kept))]

        logger.debug(
            "Condition operator changed",
            extra={
                "condition": condition.name,
                "from_operator": condition.operator,
                "to_operator": key,
                "from_count": len(current),
                "to_count": target,
            },
        )
        return condition.model_copy(update={"operator": key, "right": shape_right(op, padded)})


def set_left(catalog: Catalog, condition: Condition, expr: Expression) -> Condition:
    """
    Replace the left operand.

    When its type changes the right side is re-synthesized with defaults of
    the new type, and the operator falls back to the new type's default if it
    is not valid for it.
    """
    with track_mutation("set_left"):
        old_type = expression_type(condition.left)
        new_type = expression_type(expr)
        if old_type == new_type:
            return condition.model_copy(update={"left": expr})

        key = condition.operator
        if key not in catalog.operators_for_type(new_type):
            key = catalog.default_condition_operator(new_type)
            if key is None:
                raise IncompatibleType(
                    f"Type '{new_type}' has no condition operators", details={"type": new_type}
                )
        op = _resolve_operator(catalog, key)
        current = len(right_values(condition.right)) if key == condition.operator else 0
        count = _target_count(op, current)
        right = shape_right(op, [default_expression(new_type) for _ in range(count)])
        return condition.model_copy(update={"left": expr, "operator": key, "right": right})


def set_right(condition: Condition, right: Right, catalog: Catalog | None = None) -> Condition:
    """
    Replace the right side as a whole.

    With a catalog the new shape is checked against the operator's
    cardinality.
    """
    with track_mutation("set_right"):
        if catalog is not None:
            op = _resolve_operator(catalog, condition.operator)
            _check_shape(condition.operator, op, right)
        return condition.model_copy(update={"right": right})


def _check_shape(key: str, op: OperatorDef, right: Right) -> None:
    count = len(right_values(right))
    if op.is_dynamic:
        ok = isinstance(right, list) and count >= op.lower_bound
        ok = ok and (op.upper_bound is None or count <= op.upper_bound)
    elif op.cardinality == 0:
        ok = right is None
    elif op.cardinality == 1:
        ok = right is not None and not isinstance(right, list)
    else:
        ok = isinstance(right, list) and count == op.cardinality
    if not ok:
        raise CardinalityOutOfRange(
            f"Operator '{key}' does not accept {count} right-hand value(s)",
            details={"operator": key, "count": count},
        )


def _dynamic_operator(catalog: Catalog, condition: Condition) -> OperatorDef:
    op = _resolve_operator(catalog, condition.operator)
    if not op.is_dynamic:
        raise CardinalityOutOfRange(
            f"Operator '{condition.operator}' has a fixed cardinality of {op.cardinality}",
            details={"operator": condition.operator, "cardinality": op.cardinality},
        )
    return op


def add_right_value(
    catalog: Catalog, condition: Condition, value: Expression | None = None
) -> Condition:
    """Append a value to the right side of a dynamic-cardinality condition."""
    with track_mutation("add_right_value"):
        op = _dynamic_operator(catalog, condition)
        values = right_values(condition.right)
        if op.upper_bound is not None and len(values) + 1 > op.upper_bound:
            raise CardinalityOutOfRange(
                f"Operator '{condition.operator}' accepts at most {op.upper_bound} values",
                details={"operator": condition.operator, "max": op.upper_bound},
            )
        if value is None:
            value = default_expression(expression_type(condition.left))
        return condition.model_copy(update={"right": [*values, value]})


def remove_right_value(catalog: Catalog, condition: Condition, index: int) -> Condition:
    with track_mutation("remove_right_value"):
        op = _dynamic_operator(catalog, condition)
        values = right_values(condition.right)
        if not 0 <= index < len(values):
            raise IndexError(f"right value index {index} out of range")
        if len(values) - 1 < op.lower_bound:
            raise CardinalityOutOfRange(
                f"Operator '{condition.operator}' needs at least {op.lower_bound} values",
                details={"operator": condition.operator, "min": op.lower_bound},
            )
        return condition.model_copy(
            update={"right": [v for i, v in enumerate(values) if i != index]}
        )
