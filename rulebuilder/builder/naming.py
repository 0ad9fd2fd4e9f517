"""
Display-name generation for conditions, groups and case results.

Names follow the nesting position of a node: children of the root group are
"Condition 1", "Condition Group 2"; children of the node at position 2 are
"Condition 2.1", "Condition Group 2.2" and so on. Only nodes whose name is
still the generated one (``auto_named``) are ever renamed.
"""

from collections.abc import Sequence

from rulebuilder.domain.enums import NodeType
from rulebuilder.model.nodes import ConditionChild, ConditionGroup

CONDITION_PREFIX = "Condition"
GROUP_PREFIX = "Condition Group"
RESULT_PREFIX = "Result"
ELSE_RESULT_NAME = "Default"
ROOT_GROUP_NAME = "Main Condition"


def number_for(scope: str, position: int) -> str:
    """Dotted number of the child at 1-based ``position`` within ``scope``."""
    return f"{scope}.{position}" if scope else str(position)


def scope_for_path(path: Sequence[int]) -> str:
    """Naming scope of the subgroup addressed by a child-index path from the root."""
    return ".".join(str(i + 1) for i in path)


def condition_name(scope: str, position: int) -> str:
    return f"{CONDITION_PREFIX} {number_for(scope, position)}"


def group_name(scope: str, position: int) -> str:
    return f"{GROUP_PREFIX} {number_for(scope, position)}"


def result_name(position: int) -> str:
    return f"{RESULT_PREFIX} {position}"


def name_for(node: ConditionChild, scope: str, position: int) -> str:
    if node.type == NodeType.CONDITION_GROUP.value:
        return group_name(scope, position)
    return condition_name(scope, position)


def renumber_children(children: Sequence[ConditionChild], scope: str) -> list[ConditionChild]:
    """
    Re-apply positional names below ``scope``.

    Auto-named nodes take the name of their current position; user-named
    nodes keep theirs. Descendants are renumbered against their new position
    even when their parent group was renamed by the user.
    """
    renamed: list[ConditionChild] = []
    for position, child in enumerate(children, start=1):
        update: dict = {}
        if child.auto_named:
            new_name = name_for(child, scope, position)
            if new_name != child.name:
                update["name"] = new_name
        if isinstance(child, ConditionGroup):
            inner = renumber_children(child.conditions, number_for(scope, position))
            if any(a is not b for a, b in zip(inner, child.conditions)):
                update["conditions"] = inner
        renamed.append(child.model_copy(update=update) if update else child)
    return renamed
