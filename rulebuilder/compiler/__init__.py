"""
Rule JSON boundary: canonical serialization and local validation.

Key Components:
- canonicalizer: strip/hydrate of editor state, serialize/parse of rules,
  deterministic JSON text
- validator: catalog-aware validation collecting every problem with its path

Design Principles:
- Determinism: Same rule produces byte-for-byte identical output
- Round-trip fidelity: strip(hydrate(strip(x))) == strip(x)
- Complete reports: validation returns every problem, not just the first
"""

from rulebuilder.compiler.canonicalizer import (
    canonicalize_json,
    hydrate,
    parse_rule,
    serialize_rule,
    strip,
    to_canonical_json_pretty,
    to_canonical_json_string,
)
from rulebuilder.compiler.validator import ensure_valid, validate_rule

__all__ = [
    "canonicalize_json",
    "ensure_valid",
    "hydrate",
    "parse_rule",
    "serialize_rule",
    "strip",
    "to_canonical_json_pretty",
    "to_canonical_json_string",
    "validate_rule",
]
