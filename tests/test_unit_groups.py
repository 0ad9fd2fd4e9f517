"""
Unit tests for condition group mutation and positional naming.

Tests cover:
- Path addressing of nested groups
- Generated names for added conditions and groups
- Renumbering after removal (user-renamed nodes keep their names)
- Reordering without renaming
- Wrapping a condition in a new group
- Backing conditions and groups with a stored rule, and clearing it again
"""

import pytest

from rulebuilder.builder import (
    add_condition,
    add_condition_group,
    clear_rule_ref,
    first_condition,
    make_condition,
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
from rulebuilder.compiler.canonicalizer import serialize_node
from rulebuilder.core.errors import IncompatibleType
from rulebuilder.domain.enums import Conjunction
from rulebuilder.model import (
    Condition,
    ConditionGroup,
    RuleRef,
    RuleRefCondition,
    RuleRefConditionGroup,
)


def _names(group: ConditionGroup) -> list[str]:
    return [child.name for child in group.conditions]


@pytest.fixture
def root(condition_rule):
    return condition_rule.definition


@pytest.fixture
def nested(catalog, root):
    """Main Condition: Condition 1, Condition 2, Condition Group 3 (3.1, 3.2)."""
    root = add_condition(catalog, root)
    return add_condition_group(catalog, root)


class TestAddressing:
    """Tests for child-index path addressing."""

    def test_root_path(self, root):
        assert node_at(root) is root

    def test_nested_path(self, nested):
        assert node_at(nested, (2, 1)).name == "Condition 3.2"

    def test_out_of_range(self, nested):
        with pytest.raises(IndexError):
            node_at(nested, (5,))

    def test_path_through_condition(self, nested):
        with pytest.raises(TypeError):
            node_at(nested, (0, 0))

    def test_replace_at_shares_untouched_subtrees(self, catalog, nested):
        replacement = make_condition(catalog, "Condition 1", return_type="text")
        updated = replace_at(nested, (0,), replacement)
        assert updated.conditions[0] is replacement
        assert updated.conditions[2] is nested.conditions[2]
        assert nested.conditions[0] is not replacement


class TestAddChildren:
    """Tests for generated names of new children."""

    def test_root_starts_with_one_condition(self, root):
        assert root.name == "Main Condition"
        assert _names(root) == ["Condition 1"]

    def test_add_condition_and_group(self, nested):
        assert _names(nested) == ["Condition 1", "Condition 2", "Condition Group 3"]
        assert _names(nested.conditions[2]) == ["Condition 3.1", "Condition 3.2"]

    def test_add_inside_nested_group(self, catalog, nested):
        updated = add_condition(catalog, nested, at=(2,))
        updated = add_condition_group(catalog, updated, at=(2,))
        group = node_at(updated, (2,))
        assert _names(group) == [
            "Condition 3.1",
            "Condition 3.2",
            "Condition 3.3",
            "Condition Group 3.4",
        ]
        assert _names(group.conditions[3]) == ["Condition 3.4.1", "Condition 3.4.2"]

    def test_new_group_defaults(self, nested):
        group = nested.conditions[2]
        assert group.conjunction == Conjunction.AND
        assert group.negated is False


class TestRemoveChild:
    """Tests for removal and renumbering."""

    def test_remove_renumbers_following_siblings(self, nested):
        updated = remove_child(nested, 0)
        assert _names(updated) == ["Condition 1", "Condition Group 2"]
        assert _names(updated.conditions[1]) == ["Condition 2.1", "Condition 2.2"]

    def test_user_named_nodes_keep_names(self, nested):
        renamed = rename(nested, "Velocity check", at=(1,))
        updated = remove_child(renamed, 0)
        assert _names(updated) == ["Velocity check", "Condition Group 2"]

    def test_renamed_group_children_still_renumbered(self, nested):
        renamed = rename(nested, "High value", at=(2,))
        updated = remove_child(renamed, 0)
        assert updated.conditions[1].name == "High value"
        assert _names(updated.conditions[1]) == ["Condition 2.1", "Condition 2.2"]

    def test_remove_inside_nested_group(self, nested):
        updated = remove_child(nested, 0, at=(2,))
        assert _names(node_at(updated, (2,))) == ["Condition 3.1"]

    def test_group_may_become_empty(self, catalog, root):
        updated = remove_child(root, 0)
        assert updated.conditions == []

    def test_remove_out_of_range(self, nested):
        with pytest.raises(IndexError):
            remove_child(nested, 3)


class TestReorderAndReplace:
    """Tests for reordering, replacement and flags."""

    def test_reorder_keeps_names(self, nested):
        updated = reorder_children(nested, 0, 2)
        assert _names(updated) == ["Condition 2", "Condition Group 3", "Condition 1"]

    def test_reorder_is_stable_move(self, nested):
        updated = reorder_children(nested, 2, 0)
        assert updated.conditions[0] is nested.conditions[2]
        assert updated.conditions[1] is nested.conditions[0]

    def test_replace_child(self, catalog, nested):
        replacement = make_condition(catalog, "Amount", auto_named=False)
        updated = replace_child(nested, 1, replacement, at=(2,))
        assert node_at(updated, (2, 1)).name == "Amount"

    def test_set_conjunction_and_not(self, nested):
        updated = set_conjunction(nested, "OR", at=(2,))
        updated = set_not(updated, True, at=(2,))
        group = node_at(updated, (2,))
        assert group.conjunction == Conjunction.OR
        assert group.negated is True
        assert nested.conditions[2].conjunction == Conjunction.AND

    def test_invalid_conjunction(self, nested):
        with pytest.raises(ValueError):
            set_conjunction(nested, "XOR")


class TestWrapInGroup:
    """Tests for wrapping a condition in a new group."""

    def test_wrap_generated_condition(self, nested):
        wrapped = wrap_in_group(nested.conditions[1])
        assert wrapped.name == "Condition Group 2"
        assert _names(wrapped) == ["Condition 2.1"]
        assert wrapped.auto_named

    def test_wrap_user_named_condition(self, catalog):
        condition = make_condition(catalog, "Velocity", auto_named=False)
        wrapped = wrap_in_group(condition)
        assert wrapped.name == "Velocity"
        assert wrapped.conditions[0] is condition
        assert not wrapped.auto_named

    def test_wrap_with_explicit_name(self, nested):
        wrapped = wrap_in_group(nested.conditions[0], name="Checks")
        assert wrapped.name == "Checks"
        assert not wrapped.auto_named

    def test_wrap_group_rejected(self, nested):
        with pytest.raises(TypeError):
            wrap_in_group(nested.conditions[2])


class TestFirstCondition:
    def test_depth_first(self, nested):
        updated = reorder_children(nested, 2, 0)
        first = first_condition(updated)
        assert isinstance(first, Condition)
        assert first.name == "Condition 3.1"

    def test_empty_tree(self, root):
        assert first_condition(remove_child(root, 0)) is None

    def test_rule_backed_nodes_are_skipped(self, nested):
        ref = make_condition_rule_ref(id="IS_VIP")
        updated = set_rule_ref(set_rule_ref(nested, ref, (0,)), ref, (2,))
        assert first_condition(updated).name == "Condition 2"


class TestRuleReferences:
    """Tests for backing a condition or group with a stored rule."""

    def test_condition_backed_by_rule(self, nested):
        ref = make_condition_rule_ref(id="IS_VIP", uuid="u-1", version=2)
        updated = set_rule_ref(nested, ref, (1,))

        node = node_at(updated, (1,))
        assert isinstance(node, RuleRefCondition)
        assert node.name == "Condition 2"
        assert node.auto_named
        assert serialize_node(node) == {
            "type": "condition",
            "returnType": "boolean",
            "name": "Condition 2",
            "ruleRef": {"id": "IS_VIP", "uuid": "u-1", "version": 2, "returnType": "boolean"},
        }
        assert updated.conditions[0] is nested.conditions[0]

    def test_group_backed_by_rule_drops_children(self, nested):
        ref = make_condition_rule_ref(id="IS_VIP", rule_type="flag")
        updated = set_rule_ref(nested, ref, (2,))

        node = node_at(updated, (2,))
        assert isinstance(node, RuleRefConditionGroup)
        assert node.name == "Condition Group 3"
        data = serialize_node(node)
        assert "conditions" not in data
        assert "conjunction" not in data
        assert data["ruleRef"]["ruleType"] == "flag"

    def test_root_backed_by_rule(self, root):
        updated = set_rule_ref(root, make_condition_rule_ref(id="IS_VIP"))
        assert isinstance(updated, RuleRefConditionGroup)
        assert updated.name == root.name

    def test_reference_must_be_boolean(self, nested):
        with pytest.raises(IncompatibleType):
            set_rule_ref(nested, RuleRef(id="RISK_SCORE", return_type="number"), (0,))

    def test_default_reference_names_no_rule(self):
        ref = make_condition_rule_ref()
        assert serialize_node(ref) == {
            "id": None,
            "uuid": None,
            "version": 1,
            "returnType": "boolean",
        }

    def test_clear_condition(self, catalog, nested):
        backed = set_rule_ref(nested, make_condition_rule_ref(id="IS_VIP"), (1,))
        cleared = clear_rule_ref(catalog, backed, (1,))
        assert cleared.conditions[1] == make_condition(catalog, "Condition 2")

    def test_clear_group_gets_two_default_conditions(self, catalog, nested):
        backed = set_rule_ref(nested, make_condition_rule_ref(id="IS_VIP"), (2,))
        cleared = clear_rule_ref(catalog, backed, (2,))
        group = node_at(cleared, (2,))
        assert isinstance(group, ConditionGroup)
        assert group.name == "Condition Group 3"
        assert _names(group) == ["Condition 3.1", "Condition 3.2"]

    def test_clear_root_gets_one_condition(self, catalog, root):
        backed = set_rule_ref(root, make_condition_rule_ref(id="IS_VIP"))
        cleared = clear_rule_ref(catalog, backed)
        assert cleared.name == root.name
        assert _names(cleared) == ["Condition 1"]

    def test_clear_requires_rule_backed_node(self, catalog, nested):
        with pytest.raises(TypeError):
            clear_rule_ref(catalog, nested, (0,))

    def test_remove_renumbers_rule_backed_sibling(self, nested):
        backed = set_rule_ref(nested, make_condition_rule_ref(id="IS_VIP"), (2,))
        updated = remove_child(backed, 0)
        assert _names(updated) == ["Condition 1", "Condition Group 2"]
        assert isinstance(updated.conditions[1], RuleRefConditionGroup)

    def test_wrap_rule_backed_condition(self, nested):
        backed = set_rule_ref(nested, make_condition_rule_ref(id="IS_VIP"), (1,))
        wrapped = wrap_in_group(backed.conditions[1])
        assert wrapped.name == "Condition Group 2"
        assert isinstance(wrapped.conditions[0], RuleRefCondition)
        assert wrapped.conditions[0].name == "Condition 2.1"

    def test_cannot_add_below_rule_backed_group(self, catalog, nested):
        backed = set_rule_ref(nested, make_condition_rule_ref(id="IS_VIP"), (2,))
        with pytest.raises(TypeError):
            add_condition(catalog, backed, (2,))
