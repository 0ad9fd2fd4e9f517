"""
HTTP clients for the external rule services.

- CatalogClient: catalog configuration and field hierarchy
- RuleServiceClient: validation, SQL generation and versioned storage
"""

from rulebuilder.services.catalog_client import CatalogClient
from rulebuilder.services.client import RuleServiceHttpClient
from rulebuilder.services.models import SaveResult, SqlResult, ValidationProblem, ValidationReport
from rulebuilder.services.rule_client import RuleServiceClient, storage_payload

__all__ = [
    "CatalogClient",
    "RuleServiceClient",
    "RuleServiceHttpClient",
    "SaveResult",
    "SqlResult",
    "ValidationProblem",
    "ValidationReport",
    "storage_payload",
]
