"""
Field, function and operator catalog.

Key Components:
- models: frozen catalog definitions (fields, functions, operators, types)
- registry: the Catalog snapshot with path resolution and selection lists
- loader: normalization of the catalog service payload
"""

from rulebuilder.catalog.loader import load_catalog
from rulebuilder.catalog.models import (
    Category,
    DynamicArgs,
    ExpressionOperatorDef,
    FieldDef,
    FixedArg,
    FunctionDef,
    OperatorDef,
    TypeDef,
)
from rulebuilder.catalog.registry import Catalog, CatalogOption

__all__ = [
    "Catalog",
    "CatalogOption",
    "Category",
    "DynamicArgs",
    "ExpressionOperatorDef",
    "FieldDef",
    "FixedArg",
    "FunctionDef",
    "OperatorDef",
    "TypeDef",
    "load_catalog",
]
