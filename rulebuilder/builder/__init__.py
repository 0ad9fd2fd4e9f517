"""
Rule AST builder.

Pure construction and mutation functions over the frozen nodes of
``rulebuilder.model``:
- expressions: literals, fields, function calls, rule refs, expression groups
- conditions: operator switching and right-hand cardinality
- case: WHEN clauses and result names
- groups: condition tree mutation addressed by child-index paths
- rules: rule roots and return-type consistency
"""

from rulebuilder.builder.case import (
    add_when_clause,
    evaluate_order,
    first_match,
    make_case,
    remove_when_clause,
    reorder_when_clauses,
    set_else,
    set_else_result_name,
    set_result_name,
    set_then,
    set_when,
)
from rulebuilder.builder.conditions import (
    add_right_value,
    make_condition,
    remove_right_value,
    set_left,
    set_operator,
    set_right,
)
from rulebuilder.builder.expressions import (
    add_function_arg,
    append_operand,
    default_expression,
    infer_return_type,
    insert_operand,
    make_expression_group,
    make_field,
    make_function_call,
    make_rule_ref,
    make_value,
    remove_function_arg,
    remove_operand,
    replace_operand,
    set_function_arg,
    set_group_operator,
    unwrap,
)
from rulebuilder.builder.groups import (
    add_condition,
    add_condition_group,
    clear_rule_ref,
    first_condition,
    make_condition_rule_ref,
    node_at,
    remove_child,
    rename,
    reorder_children,
    replace_at,
    replace_child,
    set_conjunction,
    set_not,
    set_rule_ref,
    wrap_in_group,
)
from rulebuilder.builder.rules import (
    TypeMismatch,
    change_structure,
    check_rule_ref,
    check_type_consistency,
    new_rule,
)

__all__ = [
    "TypeMismatch",
    "add_condition",
    "add_condition_group",
    "add_function_arg",
    "add_right_value",
    "add_when_clause",
    "append_operand",
    "change_structure",
    "check_rule_ref",
    "check_type_consistency",
    "clear_rule_ref",
    "default_expression",
    "evaluate_order",
    "first_condition",
    "first_match",
    "infer_return_type",
    "insert_operand",
    "make_case",
    "make_condition",
    "make_condition_rule_ref",
    "make_expression_group",
    "make_field",
    "make_function_call",
    "make_rule_ref",
    "make_value",
    "new_rule",
    "node_at",
    "remove_child",
    "remove_function_arg",
    "remove_operand",
    "remove_right_value",
    "remove_when_clause",
    "rename",
    "reorder_children",
    "reorder_when_clauses",
    "replace_at",
    "replace_child",
    "replace_operand",
    "set_conjunction",
    "set_else",
    "set_else_result_name",
    "set_function_arg",
    "set_group_operator",
    "set_left",
    "set_not",
    "set_operator",
    "set_result_name",
    "set_right",
    "set_rule_ref",
    "set_then",
    "set_when",
    "unwrap",
    "wrap_in_group",
]
