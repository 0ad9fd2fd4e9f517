"""
Expression construction, return-type inference and operand mutation.

All functions are pure: they return new nodes and leave their inputs alone.
Catalog lookups that fail raise the matching ``Unknown*`` error before any
node is built.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from rulebuilder.catalog.models import FunctionDef
from rulebuilder.catalog.registry import Catalog
from rulebuilder.core.errors import (
    CannotRemoveLastOperand,
    IncompatibleType,
    MalformedDynamicArgs,
    UnknownArgument,
    UnknownField,
    UnknownFunction,
    UnknownOperator,
)
from rulebuilder.core.observability import track_mutation
from rulebuilder.domain.enums import DEFAULT_VALUES, NUMERIC_ARITHMETIC_SYMBOLS, ReturnType
from rulebuilder.model.nodes import (
    Expression,
    ExpressionGroup,
    FieldExpr,
    FunctionArg,
    FunctionCall,
    FunctionExpr,
    RuleRefExpr,
    ValueExpr,
)

logger = logging.getLogger(__name__)

_UNSET: Any = object()


# =============================================================================
# Constructors
# =============================================================================


def make_value(return_type: str, value: Any = _UNSET) -> ValueExpr:
    """Literal of ``return_type``; without ``value`` the type's default literal."""
    if value is _UNSET:
        value = DEFAULT_VALUES.get(return_type)
    return ValueExpr(return_type=return_type, value=value)


def default_expression(return_type: str) -> ValueExpr:
    """Typed default operand: number 0, text "", boolean false, date null."""
    return make_value(return_type)


def make_field(catalog: Catalog, path: str) -> FieldExpr:
    field_def = catalog.resolve_field(path)
    if field_def is None:
        raise UnknownField(f"Unknown field '{path}'", details={"field": path})
    return FieldExpr(return_type=field_def.type, field=path)


def _default_dynamic_arg(function_def: FunctionDef) -> ValueExpr:
    spec = function_def.dynamic_args
    if spec.default_value is not None:
        return make_value(spec.arg_type, spec.default_value)
    return default_expression(spec.arg_type)


def _check_dynamic_count(path: str, function_def: FunctionDef, count: int) -> None:
    spec = function_def.dynamic_args
    if not spec.allows(count):
        upper = "unbounded" if spec.max_args is None else spec.max_args
        raise MalformedDynamicArgs(
            f"Function '{path}' expects {spec.min_args}-{upper} arguments, got {count}",
            details={
                "function": path,
                "min_args": spec.min_args,
                "max_args": spec.max_args,
                "count": count,
            },
        )


def make_function_call(
    catalog: Catalog,
    path: str,
    initial_args: Sequence[Expression] | Mapping[str, Expression] | None = None,
) -> FunctionExpr:
    """
    Build a call of the catalog function at ``path``.

    Dynamic functions start with exactly ``minArgs`` default arguments unless
    ``initial_args`` (a sequence) is given, which must respect the bounds.
    Fixed functions take ``initial_args`` as a name -> Expression mapping;
    missing arguments get their declared default.

    Raises:
        UnknownFunction: If ``path`` is not a function
        MalformedDynamicArgs: If dynamic ``initial_args`` are out of bounds
        UnknownArgument: If a fixed argument name is not declared
    """
    function_def = catalog.resolve_function(path)
    if function_def is None:
        raise UnknownFunction(f"Unknown function '{path}'", details={"function": path})

    args: list
    if function_def.is_dynamic:
        if initial_args is None:
            min_args = function_def.dynamic_args.min_args
            args = [_default_dynamic_arg(function_def) for _ in range(min_args)]
        else:
            args = list(initial_args)
            _check_dynamic_count(path, function_def, len(args))
    else:
        given = dict(initial_args or {})
        unknown = sorted(set(given) - set(function_def.args))
        if unknown:
            raise UnknownArgument(
                f"Function '{path}' has no argument(s) {', '.join(unknown)}",
                details={"function": path, "arguments": unknown},
            )
        args = []
        for name, arg_def in function_def.args.items():
            if name in given:
                value = given[name]
            elif arg_def.default_value is not None:
                value = make_value(arg_def.type, arg_def.default_value)
            else:
                value = default_expression(arg_def.type)
            args.append(FunctionArg(name=name, value=value))

    return FunctionExpr(
        return_type=function_def.return_type, function=FunctionCall(name=path, args=args)
    )


def make_rule_ref(
    id: str | None,
    uuid: str | None,
    version: int | None,
    return_type: str,
    rule_type: str | None = None,
) -> RuleRefExpr:
    return RuleRefExpr(
        return_type=return_type, id=id, uuid=uuid, version=version, rule_type=rule_type
    )


def make_expression_group(initial: Expression, return_type: str | None = None) -> ExpressionGroup:
    """Length-1 group around ``initial``: the "no operation yet" state."""
    return ExpressionGroup(
        return_type=return_type or expression_type(initial),
        expressions=[initial],
        operators=[],
    )


# =============================================================================
# Inference
# =============================================================================


def expression_type(expr: Expression) -> str:
    if isinstance(expr, ExpressionGroup):
        return infer_return_type(expr)
    return expr.return_type


def infer_return_type(group: ExpressionGroup) -> str:
    """
    Net type of a group.

    Any arithmetic symbol (``+ - * /``) makes the group numeric, whatever its
    operand types, including text ``+`` text. Otherwise the group has the
    type of its first operand.
    """
    return _infer(group.expressions, group.operators)


def _infer(expressions: Sequence[Expression], operators: Sequence[str]) -> str:
    if any(symbol in NUMERIC_ARITHMETIC_SYMBOLS for symbol in operators):
        return ReturnType.NUMBER.value
    return expression_type(expressions[0])


def _rebuild(expressions: list, operators: list[str]) -> ExpressionGroup:
    return ExpressionGroup(
        return_type=_infer(expressions, operators), expressions=expressions, operators=operators
    )


# =============================================================================
# Group mutation
# =============================================================================


def _operator_symbol(catalog: Catalog, type_name: str, operator_key: str | None) -> str:
    valid = catalog.expression_operators_for_type(type_name)
    if operator_key is not None:
        op = catalog.resolve_expression_operator(operator_key)
        if op is None:
            raise UnknownOperator(
                f"Unknown expression operator '{operator_key}'",
                details={"operator": operator_key},
            )
        if operator_key not in valid:
            raise IncompatibleType(
                f"Operator '{operator_key}' is not valid for type '{type_name}'",
                details={"operator": operator_key, "type": type_name, "valid": valid},
            )
        return op.symbol

    if not valid:
        raise IncompatibleType(
            f"Type '{type_name}' supports no expression operators",
            details={"type": type_name},
        )
    type_def = catalog.type_def(type_name)
    key = valid[0]
    if type_def is not None and type_def.default_expression_operator in valid:
        key = type_def.default_expression_operator
    return catalog.expression_operators[key].symbol


def append_operand(
    catalog: Catalog,
    group: ExpressionGroup,
    operator_key: str | None = None,
    operand: Expression | None = None,
) -> ExpressionGroup:
    """
    Append an operand to ``group``.

    The new operand is a default literal of the group's inferred type unless
    ``operand`` is given. The joining operator is ``operator_key`` if given,
    else the type's default expression operator, else its first valid one.

    Raises:
        UnknownOperator: If ``operator_key`` is not in the catalog
        IncompatibleType: If the type has no expression operators, or
            ``operator_key`` is not valid for it
    """
    with track_mutation("append_operand"):
        type_name = infer_return_type(group)
        symbol = _operator_symbol(catalog, type_name, operator_key)
        new_operand = operand if operand is not None else default_expression(type_name)
        result = _rebuild([*group.expressions, new_operand], [*group.operators, symbol])
        logger.debug(
            "Appended operand",
            extra={"operator": symbol, "operands": len(result.expressions)},
        )
        return result


def insert_operand(
    catalog: Catalog,
    group: ExpressionGroup,
    after_index: int,
    operator_key: str | None = None,
    operand: Expression | None = None,
) -> ExpressionGroup:
    """Like ``append_operand`` but places the operand right after ``after_index``."""
    with track_mutation("insert_operand"):
        if not 0 <= after_index < len(group.expressions):
            raise IndexError(f"operand index {after_index} out of range")
        type_name = infer_return_type(group)
        symbol = _operator_symbol(catalog, type_name, operator_key)
        new_operand = operand if operand is not None else default_expression(type_name)
        expressions = list(group.expressions)
        operators = list(group.operators)
        expressions.insert(after_index + 1, new_operand)
        operators.insert(after_index, symbol)
        return _rebuild(expressions, operators)


def remove_operand(group: ExpressionGroup, index: int) -> ExpressionGroup:
    """
    Remove the operand at ``index`` together with the operator before it
    (or after it, for the first operand).

    Raises:
        CannotRemoveLastOperand: If the group has a single operand
    """
    with track_mutation("remove_operand"):
        if len(group.expressions) == 1:
            raise CannotRemoveLastOperand(
                "An expression group must keep at least one operand",
                details={"index": index},
            )
        if not 0 <= index < len(group.expressions):
            raise IndexError(f"operand index {index} out of range")
        expressions = [e for i, e in enumerate(group.expressions) if i != index]
        drop = index - 1 if index > 0 else 0
        operators = [o for i, o in enumerate(group.operators) if i != drop]
        logger.debug("Removed operand", extra={"index": index})
        return _rebuild(expressions, operators)


def replace_operand(group: ExpressionGroup, index: int, expr: Expression) -> ExpressionGroup:
    with track_mutation("replace_operand"):
        if not 0 <= index < len(group.expressions):
            raise IndexError(f"operand index {index} out of range")
        expressions = list(group.expressions)
        expressions[index] = expr
        return _rebuild(expressions, list(group.operators))


def set_group_operator(
    group: ExpressionGroup, index: int, symbol: str, catalog: Catalog | None = None
) -> ExpressionGroup:
    """Replace the operator between operands ``index`` and ``index + 1``."""
    with track_mutation("set_group_operator"):
        if not 0 <= index < len(group.operators):
            raise IndexError(f"operator index {index} out of range")
        if catalog is not None and catalog.expression_operator_by_symbol(symbol) is None:
            raise UnknownOperator(
                f"Unknown expression operator '{symbol}'", details={"operator": symbol}
            )
        operators = list(group.operators)
        operators[index] = symbol
        return _rebuild(list(group.expressions), operators)


def unwrap(expr: Expression) -> Expression:
    """Collapse single-operand groups down to the operand they wrap."""
    while isinstance(expr, ExpressionGroup) and len(expr.expressions) == 1:
        expr = expr.expressions[0]
    return expr


# =============================================================================
# Function arguments
# =============================================================================


def _resolve_dynamic(catalog: Catalog, expr: FunctionExpr) -> FunctionDef:
    path = expr.function.name
    function_def = catalog.resolve_function(path)
    if function_def is None:
        raise UnknownFunction(f"Unknown function '{path}'", details={"function": path})
    if not function_def.is_dynamic:
        raise MalformedDynamicArgs(
            f"Function '{path}' has a fixed argument list", details={"function": path}
        )
    return function_def


def _with_args(expr: FunctionExpr, args: list) -> FunctionExpr:
    return expr.model_copy(update={"function": expr.function.model_copy(update={"args": args})})


def add_function_arg(
    catalog: Catalog, expr: FunctionExpr, value: Expression | None = None
) -> FunctionExpr:
    """
    Append an argument to a dynamic-arg call.

    Raises:
        MalformedDynamicArgs: If the call is already at ``maxArgs`` or the
            function is not dynamic
    """
    with track_mutation("add_function_arg"):
        function_def = _resolve_dynamic(catalog, expr)
        args = list(expr.function.args)
        _check_dynamic_count(expr.function.name, function_def, len(args) + 1)
        args.append(value if value is not None else _default_dynamic_arg(function_def))
        return _with_args(expr, args)


def remove_function_arg(catalog: Catalog, expr: FunctionExpr, index: int) -> FunctionExpr:
    with track_mutation("remove_function_arg"):
        function_def = _resolve_dynamic(catalog, expr)
        args = list(expr.function.args)
        if not 0 <= index < len(args):
            raise IndexError(f"argument index {index} out of range")
        _check_dynamic_count(expr.function.name, function_def, len(args) - 1)
        del args[index]
        return _with_args(expr, args)


def set_function_arg(expr: FunctionExpr, key: int | str, value: Expression) -> FunctionExpr:
    """Replace an argument by position (dynamic calls) or by name (fixed calls)."""
    with track_mutation("set_function_arg"):
        args = list(expr.function.args)
        if isinstance(key, int):
            if not 0 <= key < len(args):
                raise IndexError(f"argument index {key} out of range")
            current = args[key]
            if isinstance(current, FunctionArg):
                args[key] = current.model_copy(update={"value": value})
            else:
                args[key] = value
            return _with_args(expr, args)

        for i, arg in enumerate(args):
            if isinstance(arg, FunctionArg) and arg.name == key:
                args[i] = arg.model_copy(update={"value": value})
                return _with_args(expr, args)
        raise UnknownArgument(
            f"Function '{expr.function.name}' has no argument '{key}'",
            details={"function": expr.function.name, "argument": key},
        )
