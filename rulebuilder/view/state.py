"""
Editor view state kept beside the rule AST.

The AST carries no ids or presentation flags. ``ViewState`` owns them:
- a side table from node id to the node's JSONPath in the definition
- expansion state (new rules start expanded; loaded rules start collapsed
  except for the root)
- per-node editing flags (e.g. the name or result name being edited)

Ids come from the hydrated definition where it has them (condition groups)
and are generated for every other addressable node.
"""

import logging
from typing import Any

from rulebuilder.core.ids import IdGenerator, default_id_generator
from rulebuilder.domain.enums import NodeType

logger = logging.getLogger(__name__)

ROOT_PATH = "$"


class ViewState:
    """
    Expansion and editing state for one editing session.

    Example:
        >>> state = ViewState(new=False)
        >>> state.index(hydrated_definition)
        >>> state.is_expanded(state.root_id)
        True
    """

    def __init__(self, new: bool = False, id_generator: IdGenerator = default_id_generator):
        self.new = new
        self.id_generator = id_generator
        self.root_id: str | None = None
        self._paths: dict[str, str] = {}
        self._ids: dict[str, str] = {}
        self._expanded: dict[str, bool] = {}
        self._editing: dict[str, set[str]] = {}

    # ------------------------------------------------------------------
    # Side table
    # ------------------------------------------------------------------

    def index(self, definition: Any) -> None:
        """
        Rebuild the id -> path table from a hydrated definition.

        ``isExpanded`` flags present in the tree seed the expansion map.
        Expansion and editing entries of nodes that no longer exist are
        dropped.
        """
        previous = self._ids
        self._paths = {}
        self._ids = {}
        self._walk(definition, ROOT_PATH, previous)
        self.root_id = self._ids.get(ROOT_PATH)
        live = set(self._paths)
        self._expanded = {k: v for k, v in self._expanded.items() if k in live}
        self._editing = {k: v for k, v in self._editing.items() if k in live}
        logger.debug("View state indexed", extra={"nodes": len(self._paths)})

    def _register(self, node: dict, path: str, previous: dict[str, str]) -> None:
        node_id = node.get("id") if node.get("type") == NodeType.CONDITION_GROUP.value else None
        # Nodes without an id of their own keep the one their path had before
        node_id = node_id or previous.get(path) or self.id_generator()
        self._paths[node_id] = path
        self._ids[path] = node_id
        if "isExpanded" in node and node_id not in self._expanded:
            self._expanded[node_id] = bool(node["isExpanded"])

    def _walk(self, node: Any, path: str, previous: dict[str, str]) -> None:
        if not isinstance(node, dict):
            return
        node_type = node.get("type")
        if node_type == NodeType.CONDITION_GROUP.value:
            self._register(node, path, previous)
            for i, child in enumerate(node.get("conditions") or []):
                self._walk(child, f"{path}.conditions[{i}]", previous)
        elif node_type == NodeType.CONDITION.value:
            self._register(node, path, previous)
        elif "whenClauses" in node:
            self._register(node, path, previous)
            for i, clause in enumerate(node.get("whenClauses") or []):
                clause_path = f"{path}.whenClauses[{i}]"
                if isinstance(clause, dict):
                    self._register(clause, clause_path, previous)
                    self._walk(clause.get("when"), f"{clause_path}.when", previous)
        elif path == ROOT_PATH:
            self._register(node, path, previous)

    def path_of(self, node_id: str) -> str | None:
        return self._paths.get(node_id)

    def id_at(self, path: str) -> str | None:
        return self._ids.get(path)

    @property
    def node_ids(self) -> list[str]:
        return list(self._paths)

    # ------------------------------------------------------------------
    # Expansion
    # ------------------------------------------------------------------

    def is_expanded(self, node_id: str) -> bool:
        if node_id in self._expanded:
            return self._expanded[node_id]
        return self.new or node_id == self.root_id

    def toggle(self, node_id: str) -> bool:
        """Flip a node's expansion and return the new state."""
        self._expanded[node_id] = not self.is_expanded(node_id)
        return self._expanded[node_id]

    def set_expanded(self, node_id: str, expanded: bool) -> None:
        self._expanded[node_id] = expanded

    def expand_all(self) -> None:
        self._expanded = {node_id: True for node_id in self._paths}

    def collapse_all(self) -> None:
        """Collapse everything but the root."""
        self._expanded = {node_id: node_id == self.root_id for node_id in self._paths}

    def reset(self, new: bool) -> None:
        """Forget explicit state and fall back to the defaults of a new or loaded rule."""
        self.new = new
        self._expanded.clear()
        self._editing.clear()

    # ------------------------------------------------------------------
    # Editing flags
    # ------------------------------------------------------------------

    def start_editing(self, node_id: str, field: str = "name") -> None:
        self._editing.setdefault(node_id, set()).add(field)

    def stop_editing(self, node_id: str, field: str = "name") -> None:
        fields = self._editing.get(node_id)
        if fields is not None:
            fields.discard(field)
            if not fields:
                del self._editing[node_id]

    def is_editing(self, node_id: str, field: str = "name") -> bool:
        return field in self._editing.get(node_id, ())
