"""
Condition-group tree mutation.

Nodes inside a condition tree are addressed by ``at``: the tuple of child
indices leading from the root group to the target (``()`` is the root
itself). Every operation copies only the groups along that path; untouched
subtrees are shared with the input tree.

Generated names are positional (see ``rulebuilder.builder.naming``). Adding a
child names it after its position; removing one renumbers the auto-named
siblings after it; reordering renames nothing.
"""

import logging
from collections.abc import Callable, Sequence

from rulebuilder.builder import naming
from rulebuilder.builder.conditions import make_condition
from rulebuilder.catalog.registry import Catalog
from rulebuilder.core.errors import IncompatibleType
from rulebuilder.core.observability import track_mutation
from rulebuilder.domain.enums import Conjunction, NodeType, ReturnType
from rulebuilder.model.nodes import (
    Condition,
    ConditionChild,
    ConditionGroup,
    RuleRef,
    RuleRefCondition,
    RuleRefConditionGroup,
)

logger = logging.getLogger(__name__)

Path = Sequence[int]
TreeNode = ConditionChild


# =============================================================================
# Addressing
# =============================================================================


def node_at(root: ConditionGroup, at: Path = ()) -> TreeNode:
    """The node addressed by ``at``."""
    node: TreeNode = root
    for depth, index in enumerate(at):
        if not isinstance(node, ConditionGroup):
            raise TypeError(f"path {tuple(at[:depth])} does not address a condition group")
        if not 0 <= index < len(node.conditions):
            raise IndexError(f"child index {index} out of range at {tuple(at[:depth])}")
        node = node.conditions[index]
    return node


def group_at(root: ConditionGroup, at: Path = ()) -> ConditionGroup:
    node = node_at(root, at)
    if not isinstance(node, ConditionGroup):
        raise TypeError(f"path {tuple(at)} does not address a condition group")
    return node


def replace_at(root: ConditionGroup, at: Path, node: TreeNode) -> TreeNode:
    """Copy of ``root`` with the node at ``at`` replaced by ``node``."""
    if not at:
        return node
    node_at(root, at)
    head, rest = at[0], at[1:]
    children = list(root.conditions)
    children[head] = replace_at(children[head], rest, node) if rest else node
    return root.model_copy(update={"conditions": children})


def _update_group(
    root: ConditionGroup, at: Path, fn: Callable[[ConditionGroup], ConditionGroup]
) -> ConditionGroup:
    return replace_at(root, at, fn(group_at(root, at)))


def _scope(at: Path, scope: str = "") -> str:
    path_scope = naming.scope_for_path(at)
    if scope and path_scope:
        return f"{scope}.{path_scope}"
    return scope or path_scope


# =============================================================================
# Construction
# =============================================================================


def make_condition_group(
    catalog: Catalog,
    name: str,
    number: str = "",
    size: int = 2,
    auto_named: bool = True,
) -> ConditionGroup:
    """
    A group of ``size`` default conditions named ``Condition <number>.k``.

    New groups start with two conditions; the root group of a condition rule
    starts with one.
    """
    return ConditionGroup(
        name=name,
        conjunction=Conjunction.AND,
        negated=False,
        conditions=[
            make_condition(catalog, naming.condition_name(number, k)) for k in range(1, size + 1)
        ],
        auto_named=auto_named,
    )


def add_condition(
    catalog: Catalog, group: ConditionGroup, at: Path = (), scope: str = ""
) -> ConditionGroup:
    """Append a default condition to the subgroup at ``at``."""
    with track_mutation("add_condition"):
        scope = _scope(at, scope)

        def append(target: ConditionGroup) -> ConditionGroup:
            position = len(target.conditions) + 1
            condition = make_condition(catalog, naming.condition_name(scope, position))
            return target.model_copy(update={"conditions": [*target.conditions, condition]})

        result = _update_group(group, at, append)
        logger.debug("Added condition", extra={"at": list(at)})
        return result


def add_condition_group(
    catalog: Catalog, group: ConditionGroup, at: Path = (), scope: str = ""
) -> ConditionGroup:
    """Append a new group of two default conditions to the subgroup at ``at``."""
    with track_mutation("add_condition_group"):
        scope = _scope(at, scope)

        def append(target: ConditionGroup) -> ConditionGroup:
            position = len(target.conditions) + 1
            child = make_condition_group(
                catalog,
                naming.group_name(scope, position),
                number=naming.number_for(scope, position),
            )
            return target.model_copy(update={"conditions": [*target.conditions, child]})

        result = _update_group(group, at, append)
        logger.debug("Added condition group", extra={"at": list(at)})
        return result


# =============================================================================
# Structural mutation
# =============================================================================


def remove_child(
    group: ConditionGroup, index: int, at: Path = (), scope: str = ""
) -> ConditionGroup:
    """
    Remove the child at ``index`` of the subgroup at ``at``.

    Auto-named siblings (and their auto-named descendants) are renamed after
    their new positions; user-renamed nodes keep their names. A group may be
    left empty; the validator reports that state.
    """
    with track_mutation("remove_child"):
        scope = _scope(at, scope)

        def remove(target: ConditionGroup) -> ConditionGroup:
            if not 0 <= index < len(target.conditions):
                raise IndexError(f"child index {index} out of range")
            remaining = [c for i, c in enumerate(target.conditions) if i != index]
            return target.model_copy(
                update={"conditions": naming.renumber_children(remaining, scope)}
            )

        result = _update_group(group, at, remove)
        logger.debug("Removed child", extra={"at": list(at), "index": index})
        return result


def reorder_children(
    group: ConditionGroup, from_index: int, to_index: int, at: Path = ()
) -> ConditionGroup:
    """Stable move of one child; every subtree is kept exactly as it was."""
    with track_mutation("reorder_children"):

        def move(target: ConditionGroup) -> ConditionGroup:
            children = list(target.conditions)
            if not 0 <= from_index < len(children) or not 0 <= to_index < len(children):
                raise IndexError(f"cannot move child {from_index} to {to_index}")
            children.insert(to_index, children.pop(from_index))
            return target.model_copy(update={"conditions": children})

        return _update_group(group, at, move)


def replace_child(
    group: ConditionGroup, index: int, node: TreeNode, at: Path = ()
) -> ConditionGroup:
    with track_mutation("replace_child"):
        return replace_at(group, (*at, index), node)


def rename(group: ConditionGroup, name: str, at: Path = ()) -> TreeNode:
    """Give the node at ``at`` a user-chosen name, exempting it from renumbering."""
    with track_mutation("rename"):
        node = node_at(group, at)
        return replace_at(group, at, node.model_copy(update={"name": name, "auto_named": False}))


def set_conjunction(
    group: ConditionGroup, conjunction: Conjunction | str, at: Path = ()
) -> ConditionGroup:
    with track_mutation("set_conjunction"):
        value = Conjunction(conjunction)
        return _update_group(group, at, lambda g: g.model_copy(update={"conjunction": value}))


def set_not(group: ConditionGroup, negated: bool, at: Path = ()) -> ConditionGroup:
    with track_mutation("set_not"):
        return _update_group(group, at, lambda g: g.model_copy(update={"negated": negated}))


def make_condition_rule_ref(
    id: str | None = None,
    uuid: str | None = None,
    version: int | None = 1,
    rule_type: str | None = None,
) -> RuleRef:
    """Boolean rule reference for a condition or group slot; no rule chosen by default."""
    return RuleRef(id=id, uuid=uuid, version=version, rule_type=rule_type)


def set_rule_ref(group: ConditionGroup, ref: RuleRef, at: Path = ()) -> TreeNode:
    """
    Back the condition or group at ``at`` with a stored rule.

    The node keeps its kind, name and naming provenance; its own comparison
    or children are dropped.

    Raises:
        IncompatibleType: If the referenced rule does not return boolean
    """
    with track_mutation("set_rule_ref"):
        if ref.return_type != ReturnType.BOOLEAN.value:
            raise IncompatibleType(
                f"Rule references in a condition must return boolean, got '{ref.return_type}'",
                details={"expected": ReturnType.BOOLEAN.value, "actual": ref.return_type},
            )
        node = node_at(group, at)
        kind = (
            RuleRefConditionGroup
            if node.type == NodeType.CONDITION_GROUP.value
            else RuleRefCondition
        )
        replacement = kind(name=node.name, rule_ref=ref, auto_named=node.auto_named)
        logger.debug(
            "Condition backed by rule reference",
            extra={"at": list(at), "rule_id": ref.id, "kind": node.type},
        )
        return replace_at(group, at, replacement)


def clear_rule_ref(
    catalog: Catalog, group: ConditionGroup, at: Path = (), scope: str = ""
) -> TreeNode:
    """
    Turn the rule-backed node at ``at`` back into default logic.

    A condition becomes a default condition. A group gets default conditions
    named below its own number: one for a root or WHEN group, two otherwise.
    """
    with track_mutation("clear_rule_ref"):
        node = node_at(group, at)
        if isinstance(node, RuleRefCondition):
            replacement: TreeNode = make_condition(catalog, node.name, auto_named=node.auto_named)
        elif isinstance(node, RuleRefConditionGroup):
            if at:
                number = naming.number_for(_scope(at[:-1], scope), at[-1] + 1)
            else:
                number = scope
            replacement = make_condition_group(
                catalog, node.name, number=number, size=2 if at else 1, auto_named=node.auto_named
            )
        else:
            raise TypeError(f"path {tuple(at)} does not address a rule-backed node")
        return replace_at(group, at, replacement)


def wrap_in_group(
    condition: Condition | RuleRefCondition, name: str | None = None
) -> ConditionGroup:
    """
    Put ``condition`` inside a new group that takes its place.

    A generated "Condition N" becomes "Condition Group N" and the wrapped
    condition becomes "Condition N.1".
    """
    with track_mutation("wrap_in_group"):
        if not isinstance(condition, (Condition, RuleRefCondition)):
            raise TypeError("only a condition can be wrapped in a group")
        number = ""
        if condition.auto_named and condition.name.startswith(f"{naming.CONDITION_PREFIX} "):
            number = condition.name[len(naming.CONDITION_PREFIX) + 1 :]
        if name is None and number:
            name = f"{naming.GROUP_PREFIX} {number}"
        child = condition
        if number:
            child = condition.model_copy(update={"name": naming.condition_name(number, 1)})
        return ConditionGroup(
            name=name or condition.name,
            conditions=[child],
            auto_named=bool(number) and name == f"{naming.GROUP_PREFIX} {number}",
        )


def first_condition(group: ConditionGroup | RuleRefConditionGroup) -> Condition | None:
    """
    Depth-first first comparison condition, or None for a tree without one.
    Rule-backed nodes are skipped.
    """
    if not isinstance(group, ConditionGroup):
        return None
    for child in group.conditions:
        if isinstance(child, Condition):
            return child
        found = first_condition(child)
        if found is not None:
            return found
    return None
