"""
Catalog loader.

Turns the catalog service payload (``GET /rules/ui/config``) into a frozen
``Catalog``. The service ships categories in its own ``!struct`` shape and
functions keyed by flat dotted names; both are normalized here so the rest of
the package only ever sees ``Category`` / ``FieldDef`` / ``FunctionDef`` trees.
"""

import logging
from typing import Any

from pydantic import ValidationError

from rulebuilder.catalog.registry import Catalog
from rulebuilder.core.errors import SchemaValidationFailed

logger = logging.getLogger(__name__)

STRUCT_TYPE = "!struct"


def _is_category(raw: dict[str, Any]) -> bool:
    if raw.get("kind") == "category":
        return True
    if raw.get("type") == STRUCT_TYPE:
        return True
    # {label, children} without a leaf type
    return "children" in raw or ("subfields" in raw and "returnType" not in raw)


def _category_children(raw: dict[str, Any]) -> dict[str, Any]:
    children = raw.get("children")
    if children is None:
        children = raw.get("subfields")
    return children or {}


def _normalize_field_tree(
    tree: dict[str, Any], path: str, errors: list[dict[str, str]]
) -> dict[str, dict[str, Any]]:
    nodes: dict[str, dict[str, Any]] = {}
    if not isinstance(tree, dict):
        errors.append({"path": path, "message": "Expected an object"})
        return nodes
    for key, raw in tree.items():
        node_path = f"{path}.{key}"
        if not isinstance(raw, dict):
            errors.append({"path": node_path, "message": "Field node must be an object"})
        elif _is_category(raw):
            nodes[key] = {
                "kind": "category",
                "label": raw.get("label", key),
                "children": _normalize_field_tree(
                    _category_children(raw), node_path, errors
                ),
            }
        elif "type" not in raw:
            errors.append({"path": f"{node_path}.type", "message": "Field has no type"})
        else:
            nodes[key] = {"kind": "field", "label": raw.get("label", key), "type": raw["type"]}
    return nodes


def _normalize_args(
    raw_args: Any, path: str, errors: list[dict[str, str]]
) -> dict[str, dict[str, Any]]:
    """Fixed args arrive either as ``[{name, label, type}]`` or name-keyed."""
    if raw_args is None:
        return {}
    args: dict[str, dict[str, Any]] = {}
    if isinstance(raw_args, list):
        for i, arg in enumerate(raw_args):
            if not isinstance(arg, dict) or "name" not in arg:
                errors.append({"path": f"{path}[{i}]", "message": "Argument must have a name"})
                continue
            name = arg["name"]
            args[name] = {k: v for k, v in arg.items() if k != "name"}
            args[name].setdefault("label", name)
        return args
    if not isinstance(raw_args, dict):
        errors.append({"path": path, "message": "Arguments must be a list or an object"})
        return args
    for name, arg in raw_args.items():
        if not isinstance(arg, dict):
            errors.append({"path": f"{path}.{name}", "message": "Argument must be an object"})
            continue
        args[name] = {"label": name, **arg}
    return args


def _normalize_dynamic_args(raw: dict[str, Any]) -> dict[str, Any] | None:
    spec = raw.get("dynamicArgs")
    # Service format: {"dynamicArgs": true, "argSpec": {...}}
    if spec is True:
        spec = raw.get("argSpec") or {}
    if not isinstance(spec, dict):
        return None
    return {
        "argType": spec.get("argType", spec.get("type", "text")),
        "minArgs": spec.get("minArgs", 0),
        "maxArgs": spec.get("maxArgs"),
        "defaultValue": spec.get("defaultValue"),
    }


def _normalize_function(
    key: str, raw: dict[str, Any], path: str, errors: list[dict[str, str]]
) -> dict[str, Any] | None:
    if "returnType" not in raw:
        errors.append({"path": f"{path}.returnType", "message": "Function has no returnType"})
        return None
    node: dict[str, Any] = {
        "kind": "function",
        "label": raw.get("label", key),
        "returnType": raw["returnType"],
    }
    dynamic = _normalize_dynamic_args(raw)
    if dynamic is not None:
        node["dynamicArgs"] = dynamic
        if raw.get("args"):
            # Both shapes at once is rejected by FunctionDef
            node["args"] = _normalize_args(raw["args"], f"{path}.args", errors)
    else:
        node["args"] = _normalize_args(raw.get("args"), f"{path}.args", errors)
    return node


def _normalize_function_tree(
    tree: dict[str, Any], path: str, errors: list[dict[str, str]]
) -> dict[str, dict[str, Any]]:
    nodes: dict[str, dict[str, Any]] = {}
    if not isinstance(tree, dict):
        errors.append({"path": path, "message": "Expected an object"})
        return nodes
    for key, raw in tree.items():
        node_path = f"{path}.{key}"
        if not isinstance(raw, dict):
            errors.append({"path": node_path, "message": "Function node must be an object"})
        elif "." in key:
            # Flat "TEXT.CONCAT" keys are regrouped under a "TEXT" category
            category, _, rest = key.partition(".")
            bucket = nodes.setdefault(
                category,
                {"kind": "category", "label": f"{category} Functions", "children": {}},
            )
            bucket["children"].update(
                _normalize_function_tree({rest: raw}, f"{path}.{category}", errors)
            )
        elif _is_category(raw):
            children = _normalize_function_tree(
                _category_children(raw), node_path, errors
            )
            existing = nodes.get(key)
            if existing is not None and existing["kind"] == "category":
                existing["children"].update(children)
            else:
                nodes[key] = {
                    "kind": "category",
                    "label": raw.get("label", key),
                    "children": children,
                }
        else:
            function = _normalize_function(key, raw, node_path, errors)
            if function is not None:
                nodes[key] = function
    return nodes


def _normalize_expression_operators(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    operators: dict[str, dict[str, Any]] = {}
    for key, value in raw.items():
        if isinstance(value, dict) and "symbol" in value:
            operators[key] = value
        elif isinstance(value, dict):
            # Per-type grouping: {"number": {"add": {...}}, ...}
            for op_key, op in value.items():
                operators.setdefault(op_key, op)
    return operators


def _normalize_types(
    raw: dict[str, Any], errors: list[dict[str, str]]
) -> dict[str, dict[str, Any]]:
    types: dict[str, dict[str, Any]] = {}
    for name, type_def in raw.items():
        if not isinstance(type_def, dict):
            errors.append({"path": f"$.types.{name}", "message": "Type must be an object"})
            continue
        normalized = dict(type_def)
        if "defaultConditionOperator" not in normalized and "defaultOperator" in normalized:
            normalized["defaultConditionOperator"] = normalized["defaultOperator"]
        types[name] = normalized
    return types


def _pydantic_errors(exc: ValidationError, prefix: str) -> list[dict[str, str]]:
    errors = []
    for err in exc.errors():
        loc = "".join(f"[{p}]" if isinstance(p, int) else f".{p}" for p in err["loc"])
        errors.append({"path": f"{prefix}{loc}", "message": err["msg"]})
    return errors


def load_catalog(payload: dict[str, Any]) -> Catalog:
    """
    Build a Catalog from a catalog service payload.

    Args:
        payload: ``{fields, funcs|functions, operators|conditionOperators, types,
                 expressionOperators, settings}``; missing sections are empty

    Returns:
        Frozen Catalog snapshot

    Raises:
        SchemaValidationFailed: If any definition is malformed (a field without a type,
            a function without a returnType or with both fixed and dynamic args)
    """
    if not isinstance(payload, dict):
        raise SchemaValidationFailed(
            "Catalog payload is malformed",
            errors=[{"path": "$", "message": "Catalog payload must be an object"}],
        )
    functions = payload.get("functions")
    if functions is None:
        functions = payload.get("funcs", {})
    operators = payload.get("conditionOperators")
    if operators is None:
        operators = payload.get("operators", {})

    errors: list[dict[str, str]] = []
    data = {
        "fields": _normalize_field_tree(payload.get("fields") or {}, "$.fields", errors),
        "functions": _normalize_function_tree(functions or {}, "$.functions", errors),
        "operators": operators or {},
        "expressionOperators": _normalize_expression_operators(
            payload.get("expressionOperators") or {}
        ),
        "types": _normalize_types(payload.get("types") or {}, errors),
        "settings": payload.get("settings") or {},
    }
    if errors:
        logger.warning("Catalog payload rejected", extra={"error_count": len(errors)})
        raise SchemaValidationFailed("Catalog payload is malformed", errors=errors)

    try:
        catalog = Catalog.model_validate(data)
    except ValidationError as e:
        errors = _pydantic_errors(e, "$")
        logger.warning("Catalog payload rejected", extra={"error_count": len(errors)})
        raise SchemaValidationFailed("Catalog payload is malformed", errors=errors) from e

    logger.info(
        "Catalog loaded",
        extra={
            "field_roots": len(catalog.fields),
            "function_roots": len(catalog.functions),
            "operators": len(catalog.operators),
        },
    )
    return catalog


__all__ = ["load_catalog"]
