"""
Rule JSON canonicalization.

Two representations of the same rule meet here:
- the persisted form stored by the rule service, and
- the hydrated form used while editing, which also carries node ids and
  expansion/editing flags.

``strip`` turns the second into the first and ``hydrate`` goes the other way.
For any persisted ``x``, ``strip(hydrate(strip(x))) == strip(x)``.

``serialize_rule`` / ``parse_rule`` convert between the typed AST and the
persisted form, and the ``to_canonical_json_*`` helpers give byte-for-byte
stable text for diffs and content hashes.
"""

import json
import logging
from typing import Any

from pydantic import ValidationError

from rulebuilder.core.errors import InvalidJSON, SchemaValidationFailed
from rulebuilder.core.ids import IdGenerator, default_id_generator
from rulebuilder.core.observability import metrics
from rulebuilder.domain.enums import NodeType
from rulebuilder.model.nodes import Rule, RuleNode

logger = logging.getLogger(__name__)

# Validation-only flags written by the editor's type checker
TRANSIENT_KEYS = frozenset(
    {
        "isExpanded",
        "isCollapsed",
        "hasInternalMismatch",
        "internalDeclaredType",
        "internalEvaluatedType",
        "__placeholderUUID",
    }
)


def canonicalize_json(obj: Any) -> dict | list | Any:
    """
    Produce a deterministic, canonical representation of a JSON object.

    This function ensures:
    - All dictionary keys are sorted alphabetically
    - Nested structures are recursively canonicalized

    Note:
        Arrays keep their input order. Operand, condition and clause order is
        semantic in a rule.
    """
    if isinstance(obj, dict):
        return {k: canonicalize_json(v) for k, v in sorted(obj.items())}

    elif isinstance(obj, list):
        return [canonicalize_json(item) for item in obj]

    else:
        return obj


def to_canonical_json_string(obj: Any) -> str:
    """
    Convert a Python object to a canonical JSON string.

    Example:
        >>> to_canonical_json_string({"version": 7, "structure": "case"})
        '{"structure":"case","version":7}'
    """
    canonical = canonicalize_json(obj)

    # separators=(',', ':') removes spaces after commas and colons
    return json.dumps(canonical, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def to_canonical_json_pretty(obj: Any) -> str:
    """Pretty-printed canonical JSON, for the JSON editor and logs."""
    canonical = canonicalize_json(obj)

    return json.dumps(canonical, sort_keys=True, indent=2, ensure_ascii=False)


# =============================================================================
# Strip / hydrate
# =============================================================================


def _is_presentation_key(key: str) -> bool:
    return key in TRANSIENT_KEYS or key.startswith("editing") or key.endswith("Expanded")


def strip(node: Any) -> Any:
    """
    Remove presentation-only keys, recursively.

    Drops editing flags (``editing*``), expansion flags (``*Expanded``,
    ``isCollapsed``), validation-only flags and the ``id`` of condition
    groups. A rule reference's ``id`` is its target rule id and is kept.
    """
    if isinstance(node, dict):
        is_group = node.get("type") == NodeType.CONDITION_GROUP.value
        return {
            key: strip(value)
            for key, value in node.items()
            if not _is_presentation_key(key) and not (is_group and key == "id")
        }
    if isinstance(node, list):
        return [strip(item) for item in node]
    return node


def _hydrate_node(node: Any, new: bool, id_generator: IdGenerator, is_root: bool) -> Any:
    if isinstance(node, list):
        return [_hydrate_node(item, new, id_generator, False) for item in node]
    if not isinstance(node, dict):
        return node

    hydrated = {key: _hydrate_node(value, new, id_generator, False) for key, value in node.items()}
    node_type = node.get("type")
    expanded = True if is_root else new

    if node_type == NodeType.CONDITION_GROUP.value:
        hydrated["id"] = id_generator()
        hydrated["isExpanded"] = expanded
    elif node_type == NodeType.CONDITION.value:
        hydrated["isExpanded"] = expanded
    elif "whenClauses" in node:
        hydrated["elseExpanded"] = new
        if is_root:
            hydrated["isExpanded"] = True
        hydrated["whenClauses"] = [
            {**clause, "isExpanded": new} if isinstance(clause, dict) else clause
            for clause in hydrated["whenClauses"]
        ]
    return hydrated


def hydrate(
    persisted: Any, new: bool = False, id_generator: IdGenerator = default_id_generator
) -> Any:
    """
    Add editor state to a persisted definition (or whole rule).

    Every condition group gets a fresh ``id``. The root node is always
    expanded; other conditions, groups and WHEN clauses are expanded for a
    newly authored rule (``new=True``) and collapsed for a loaded one.
    """
    if isinstance(persisted, dict) and "definition" in persisted and "structure" in persisted:
        return {
            **persisted,
            "definition": _hydrate_node(persisted["definition"], new, id_generator, True),
        }
    return _hydrate_node(persisted, new, id_generator, True)


# =============================================================================
# Serialize / parse
# =============================================================================


def serialize_node(node: RuleNode) -> dict[str, Any]:
    """Persisted JSON of any AST node."""
    return node.model_dump(by_alias=True, mode="json")


def serialize_rule(rule: Rule) -> dict[str, Any]:
    """
    Persisted JSON of a rule.

    Top-level keys are exactly ``structure, returnType, ruleType, uuId,
    version, metadata, definition`` in that order.
    """
    payload = serialize_node(rule)
    metrics.rule_json_bytes.labels(structure=rule.structure.value).observe(
        len(to_canonical_json_string(payload).encode("utf-8"))
    )
    return payload


def _error_path(loc: tuple, data: Any, missing: bool = False) -> str:
    """
    JSONPath of a pydantic error location.

    Union tags pydantic inserts into ``loc`` are not keys of the input and are
    left out by walking the input alongside the location. Only a missing key
    is named past the end of the input.
    """
    path = "$"
    current = data
    for position, segment in enumerate(loc):
        last = position == len(loc) - 1
        if isinstance(segment, int) and isinstance(current, list) and segment < len(current):
            path += f"[{segment}]"
            current = current[segment]
        elif isinstance(current, dict) and segment in current:
            path += f".{segment}"
            current = current[segment]
        elif missing and last and isinstance(current, dict) and isinstance(segment, str):
            path += f".{segment}"
    return path


def validation_errors(exc: ValidationError, data: Any) -> list[dict[str, str]]:
    return [
        {"path": _error_path(err["loc"], data, err["type"] == "missing"), "message": err["msg"]}
        for err in exc.errors()
    ]


def parse_rule(payload: dict[str, Any] | str | bytes) -> Rule:
    """
    Parse persisted (or hydrated) rule JSON into a typed Rule.

    Args:
        payload: Rule JSON as a dict or as text

    Raises:
        InvalidJSON: If text input is not valid JSON
        SchemaValidationFailed: If the JSON does not describe a rule; carries
            every ``{path, message}`` problem
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            metrics.validations_total.labels(source="parse", status="invalid_json").inc()
            logger.warning(
                "Rule text is not valid JSON", extra={"line": e.lineno, "column": e.colno}
            )
            raise InvalidJSON(
                f"Invalid JSON: {e.msg}",
                details={"line": e.lineno, "column": e.colno, "position": e.pos},
            ) from e

    if not isinstance(payload, dict):
        metrics.validations_total.labels(source="parse", status="invalid").inc()
        raise SchemaValidationFailed(
            "Rule JSON must be an object",
            errors=[{"path": "$", "message": f"expected object, got {type(payload).__name__}"}],
        )

    try:
        rule = Rule.model_validate(payload)
    except ValidationError as e:
        errors = validation_errors(e, payload)
        metrics.validations_total.labels(source="parse", status="invalid").inc()
        metrics.validation_errors_count.labels(source="parse").observe(len(errors))
        logger.warning("Rule JSON failed schema validation", extra={"error_count": len(errors)})
        raise SchemaValidationFailed("Rule JSON failed schema validation", errors=errors) from e

    metrics.validations_total.labels(source="parse", status="valid").inc()
    return rule
