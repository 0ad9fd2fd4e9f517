"""
Catalog registry: path-based lookup and type-filtered selection lists.

Resolution walks a dotted path segment by segment through nested
``Category.children``. A missing segment, or a path ending on a category, is
``None``: callers treat it as a normal result, not an exceptional one.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import Field

from rulebuilder.catalog.models import (
    Category,
    CatalogModel,
    CatalogNode,
    ExpressionOperatorDef,
    FieldDef,
    FunctionDef,
    OperatorDef,
    TypeDef,
)


@dataclass(frozen=True)
class CatalogOption:
    """One row of a flattened selection list (a picker entry)."""

    path: str
    label: str
    depth: int
    selectable: bool
    type: str | None = None


def _walk(tree: Mapping[str, CatalogNode], path: str) -> CatalogNode | None:
    if not path:
        return None
    node: CatalogNode | None = None
    children: Mapping[str, CatalogNode] = tree
    for segment in path.split("."):
        if children is None:
            return None
        node = children.get(segment)
        if node is None:
            return None
        children = node.children if isinstance(node, Category) else None
    return node


def _leaf_type(node: CatalogNode) -> str | None:
    if isinstance(node, FieldDef):
        return node.type
    if isinstance(node, FunctionDef):
        return node.return_type
    return None


def _flatten(
    tree: Mapping[str, CatalogNode], expected_type: str | None, prefix: str, depth: int
) -> list[CatalogOption]:
    options: list[CatalogOption] = []
    for key, node in tree.items():
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(node, Category):
            below = _flatten(node.children, expected_type, path, depth + 1)
            # Categories survive only when something beneath them matches
            if below:
                options.append(CatalogOption(path, node.label, depth, selectable=False))
                options.extend(below)
            continue
        leaf_type = _leaf_type(node)
        if expected_type is None or leaf_type == expected_type:
            options.append(CatalogOption(path, node.label, depth, selectable=True, type=leaf_type))
    return options


def _leaves(tree: Mapping[str, CatalogNode], prefix: str = "") -> Iterator[tuple[str, CatalogNode]]:
    for key, node in tree.items():
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(node, Category):
            yield from _leaves(node.children, path)
        else:
            yield path, node


class Catalog(CatalogModel):
    """
    Immutable snapshot of everything a rule may reference.

    Build one with ``rulebuilder.catalog.loader.load_catalog`` from the catalog
    service payload, then pass it explicitly to every builder operation.
    """

    fields: dict[str, CatalogNode] = Field(default_factory=dict)
    functions: dict[str, CatalogNode] = Field(default_factory=dict)
    operators: dict[str, OperatorDef] = Field(default_factory=dict)
    expression_operators: dict[str, ExpressionOperatorDef] = Field(default_factory=dict)
    types: dict[str, TypeDef] = Field(default_factory=dict)
    settings: dict[str, Any] = Field(default_factory=dict)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_field(self, path: str | None) -> FieldDef | None:
        node = _walk(self.fields, path or "")
        return node if isinstance(node, FieldDef) else None

    def resolve_function(self, path: str | None) -> FunctionDef | None:
        node = _walk(self.functions, path or "")
        return node if isinstance(node, FunctionDef) else None

    def resolve_operator(self, key: str | None) -> OperatorDef | None:
        if key is None:
            return None
        return self.operators.get(key)

    def resolve_expression_operator(self, key: str | None) -> ExpressionOperatorDef | None:
        if key is None:
            return None
        return self.expression_operators.get(key)

    def expression_operator_by_symbol(
        self, symbol: str
    ) -> tuple[str, ExpressionOperatorDef] | None:
        for key, op in self.expression_operators.items():
            if op.symbol == symbol:
                return key, op
        return None

    def type_def(self, type_name: str | None) -> TypeDef | None:
        if type_name is None:
            return None
        return self.types.get(type_name)

    # ------------------------------------------------------------------
    # Selection lists
    # ------------------------------------------------------------------

    def list_fields(self, expected_type: str | None = None) -> list[CatalogOption]:
        """Depth-first picker entries for fields, optionally restricted to one type."""
        return _flatten(self.fields, expected_type, "", 0)

    def list_functions(self, expected_type: str | None = None) -> list[CatalogOption]:
        """Depth-first picker entries for functions, filtered by return type."""
        return _flatten(self.functions, expected_type, "", 0)

    def first_field(self, type_name: str) -> str | None:
        """Path of the first field (depth-first) declaring ``type_name``."""
        for path, node in _leaves(self.fields):
            if isinstance(node, FieldDef) and node.type == type_name:
                return path
        return None

    def operators_for_type(self, type_name: str) -> list[str]:
        """Condition operator keys valid for a left operand of ``type_name``."""
        type_def = self.type_def(type_name)
        if type_def is None or not type_def.valid_condition_operators:
            return list(self.operators)
        return [key for key in type_def.valid_condition_operators if key in self.operators]

    def expression_operators_for_type(self, type_name: str) -> list[str]:
        """Expression operator keys valid for operands of ``type_name``."""
        type_def = self.type_def(type_name)
        if type_def is None:
            return []
        return [
            key for key in type_def.valid_expression_operators if key in self.expression_operators
        ]

    def default_condition_operator(self, type_name: str) -> str | None:
        type_def = self.type_def(type_name)
        if type_def is not None and type_def.default_condition_operator in self.operators:
            return type_def.default_condition_operator
        valid = self.operators_for_type(type_name)
        return valid[0] if valid else None
