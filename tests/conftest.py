"""
Pytest configuration and shared fixtures for the rule builder unit tests.

Provides:
- CATALOG_PAYLOAD: a catalog service payload in the service's own shapes
  (``!struct`` categories, flat dotted function keys, ``dynamicArgs: true``)
- catalog: the payload loaded into a Catalog
- condition_rule / case_rule / expression_rule: fresh rules of each structure
"""

from __future__ import annotations

import copy
import sys
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]

# Add the package root to path for imports
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402 (import after path setup)

from rulebuilder.builder import new_rule  # noqa: E402 (import after path setup)
from rulebuilder.catalog import Catalog, load_catalog  # noqa: E402 (import after path setup)
from rulebuilder.core.observability import set_rule_uuid, set_session_id  # noqa: E402
from rulebuilder.model import Rule  # noqa: E402 (import after path setup)

NUMBER_OPERATORS = ["equal", "not_equal", "greater_than", "between", "is_null", "in"]

CATALOG_PAYLOAD: dict[str, Any] = {
    "fields": {
        "TABLE1": {
            "label": "Table 1",
            "type": "!struct",
            "subfields": {
                "NUMBER_FIELD_01": {"label": "Number Field 01", "type": "number"},
                "NUMBER_FIELD_02": {"label": "Number Field 02", "type": "number"},
                "TEXT_FIELD_01": {"label": "Text Field 01", "type": "text"},
                "DATE_FIELD_01": {"label": "Date Field 01", "type": "date"},
            },
        },
        "TABLE2": {
            "label": "Table 2",
            "children": {
                "FLAG_01": {"label": "Flag 01", "type": "boolean"},
            },
        },
    },
    "functions": {
        "MATH.SUM": {
            "label": "Sum",
            "returnType": "number",
            "dynamicArgs": True,
            "argSpec": {"type": "number", "minArgs": 2, "maxArgs": 10},
        },
        "MATH.ROUND": {
            "label": "Round",
            "returnType": "number",
            "args": [
                {"name": "value", "label": "Value", "type": "number"},
                {"name": "digits", "label": "Digits", "type": "number", "defaultValue": 2},
            ],
        },
        "TEXT.UPPER": {
            "label": "Upper Case",
            "returnType": "text",
            "args": {"value": {"type": "text"}},
        },
        "DATE.TODAY": {"label": "Today", "returnType": "date"},
    },
    "conditionOperators": {
        "equal": {"label": "Equals", "cardinality": 1},
        "not_equal": {"label": "Not Equals", "cardinality": 1},
        "greater_than": {"label": "Greater Than", "cardinality": 1},
        "between": {"label": "Between", "cardinality": 2},
        "is_null": {"label": "Is Null", "cardinality": 0},
        "in": {
            "label": "In",
            "defaultCardinality": 1,
            "minCardinality": 1,
            "maxCardinality": 5,
        },
    },
    "expressionOperators": {
        "add": {"symbol": "+", "label": "Add"},
        "subtract": {"symbol": "-", "label": "Subtract"},
        "multiply": {"symbol": "*", "label": "Multiply"},
        "divide": {"symbol": "/", "label": "Divide"},
        "concat": {"symbol": "&", "label": "Concatenate"},
    },
    "types": {
        "number": {
            "label": "Number",
            "validConditionOperators": NUMBER_OPERATORS,
            "defaultConditionOperator": "equal",
            "validExpressionOperators": ["add", "subtract", "multiply", "divide"],
            "defaultExpressionOperator": "add",
        },
        "text": {
            "label": "Text",
            "validConditionOperators": ["equal", "not_equal", "is_null", "in"],
            "defaultConditionOperator": "equal",
            "validExpressionOperators": ["concat", "add"],
            "defaultExpressionOperator": "concat",
        },
        "date": {
            "label": "Date",
            "validConditionOperators": ["equal", "greater_than", "between", "is_null"],
            "defaultOperator": "equal",
            "validExpressionOperators": [],
        },
        "boolean": {
            "label": "Boolean",
            "validConditionOperators": ["equal", "is_null"],
            "defaultConditionOperator": "equal",
        },
    },
    "settings": {"defaultRuleType": "Reporting"},
}


def catalog_payload() -> dict[str, Any]:
    """Independent copy of the test catalog payload, safe to mutate."""
    return copy.deepcopy(CATALOG_PAYLOAD)


@pytest.fixture(scope="session")
def catalog() -> Catalog:
    return load_catalog(catalog_payload())


@pytest.fixture
def condition_rule(catalog: Catalog) -> Rule:
    return new_rule(catalog, "condition")


@pytest.fixture
def case_rule(catalog: Catalog) -> Rule:
    return new_rule(catalog, "case", return_type="text")


@pytest.fixture
def expression_rule(catalog: Catalog) -> Rule:
    return new_rule(catalog, "expression", return_type="number")


@pytest.fixture(autouse=True)
def clear_session_context():
    """Session and rule context vars must not leak between tests."""
    yield
    set_session_id("")
    set_rule_uuid(None)
