"""
Unit tests for editor view state.

Tests cover:
- id -> JSONPath side table built from a hydrated definition
- Stable ids across re-indexing
- Expansion defaults for new and loaded rules
- Editing flags
"""

import pytest

from rulebuilder.builder import (
    add_condition_group,
    add_when_clause,
    make_condition_rule_ref,
    set_rule_ref,
)
from rulebuilder.compiler import hydrate
from rulebuilder.compiler.canonicalizer import serialize_node
from rulebuilder.core.ids import SequentialIdGenerator
from rulebuilder.view import ViewState


@pytest.fixture
def hydrated(catalog, condition_rule):
    definition = add_condition_group(catalog, condition_rule.definition)
    return hydrate(serialize_node(definition), id_generator=SequentialIdGenerator("g"))


@pytest.fixture
def state(hydrated):
    view = ViewState(new=False, id_generator=SequentialIdGenerator("v"))
    view.index(hydrated)
    return view


class TestIndex:
    """Tests for the id -> path side table."""

    def test_root_uses_group_id(self, state, hydrated):
        assert state.root_id == hydrated["id"]
        assert state.path_of(state.root_id) == "$"

    def test_groups_keep_hydrated_ids(self, state, hydrated):
        group = hydrated["conditions"][1]
        assert state.path_of(group["id"]) == "$.conditions[1]"

    def test_conditions_get_generated_ids(self, state):
        condition_id = state.id_at("$.conditions[0]")
        assert condition_id.startswith("v-")
        assert state.path_of(condition_id) == "$.conditions[0]"
        assert state.id_at("$.conditions[1].conditions[1]") is not None

    def test_every_node_indexed(self, state):
        # root, condition, group and its two conditions
        assert len(state.node_ids) == 5

    def test_reindex_keeps_ids(self, state, hydrated):
        before = {path: state.id_at(path) for path in ("$.conditions[0]", "$.conditions[1]")}
        state.index(hydrated)
        assert {path: state.id_at(path) for path in before} == before

    def test_reindex_prunes_removed_nodes(self, state, hydrated):
        removed = state.id_at("$.conditions[1]")
        state.set_expanded(removed, True)
        state.start_editing(removed)

        state.index({**hydrated, "conditions": hydrated["conditions"][:1]})

        assert state.path_of(removed) is None
        assert not state.is_editing(removed)
        assert len(state.node_ids) == 2

    def test_case_clauses_indexed(self, catalog, case_rule):
        case = add_when_clause(catalog, case_rule.definition)
        view = ViewState(id_generator=SequentialIdGenerator("v"))
        view.index(hydrate(serialize_node(case)))
        assert view.id_at("$.whenClauses[1]") is not None
        assert view.id_at("$.whenClauses[1].when") is not None
        assert view.is_expanded(view.root_id)
        assert not view.is_expanded(view.id_at("$.whenClauses[0]"))

    def test_rule_backed_group_indexed_without_children(self, catalog, condition_rule):
        definition = add_condition_group(catalog, condition_rule.definition)
        definition = set_rule_ref(definition, make_condition_rule_ref(id="IS_VIP"), (1,))
        hydrated = hydrate(serialize_node(definition), id_generator=SequentialIdGenerator("g"))
        view = ViewState(id_generator=SequentialIdGenerator("v"))

        view.index(hydrated)

        group_id = hydrated["conditions"][1]["id"]
        assert group_id != "IS_VIP"
        assert view.path_of(group_id) == "$.conditions[1]"
        assert view.id_at("$.conditions[1].conditions[0]") is None
        # root, condition and the rule-backed group
        assert len(view.node_ids) == 3


class TestExpansion:
    """Tests for expansion state."""

    def test_loaded_rule_defaults(self, state):
        assert state.is_expanded(state.root_id)
        assert not state.is_expanded(state.id_at("$.conditions[0]"))

    def test_new_rule_defaults(self, catalog, condition_rule):
        definition = add_condition_group(catalog, condition_rule.definition)
        view = ViewState(new=True)
        view.index(hydrate(serialize_node(definition), new=True))
        assert all(view.is_expanded(node_id) for node_id in view.node_ids)

    def test_toggle(self, state):
        node_id = state.id_at("$.conditions[1]")
        assert state.toggle(node_id) is True
        assert state.is_expanded(node_id)
        assert state.toggle(node_id) is False

    def test_expand_and_collapse_all(self, state):
        state.expand_all()
        assert all(state.is_expanded(node_id) for node_id in state.node_ids)

        state.collapse_all()
        assert state.is_expanded(state.root_id)
        others = [node_id for node_id in state.node_ids if node_id != state.root_id]
        assert not any(state.is_expanded(node_id) for node_id in others)

    def test_reset(self, state):
        node_id = state.id_at("$.conditions[0]")
        state.set_expanded(node_id, True)
        state.reset(new=False)
        assert not state.is_expanded(node_id)
        state.reset(new=True)
        assert state.is_expanded(node_id)


class TestEditingFlags:
    def test_start_and_stop(self, state):
        node_id = state.id_at("$.conditions[0]")
        state.start_editing(node_id)
        state.start_editing(node_id, "resultName")
        assert state.is_editing(node_id)
        assert state.is_editing(node_id, "resultName")

        state.stop_editing(node_id)
        assert not state.is_editing(node_id)
        assert state.is_editing(node_id, "resultName")

    def test_stop_without_start(self, state):
        state.stop_editing("unknown")
        assert not state.is_editing("unknown")
