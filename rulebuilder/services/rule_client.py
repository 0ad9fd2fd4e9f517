"""
Client for the rule validation, SQL generation and storage services.

The storage service owns ``uuId`` and ``version``: they are removed from
create/update payloads and come back in the ``SaveResult``.
"""

import logging
from typing import Any
from urllib.parse import quote

from rulebuilder.compiler.canonicalizer import parse_rule, serialize_rule, strip
from rulebuilder.core.errors import ServiceError
from rulebuilder.core.observability import metrics, set_rule_uuid
from rulebuilder.model.nodes import Rule
from rulebuilder.services.client import RuleServiceHttpClient
from rulebuilder.services.models import SaveResult, SqlResult, ValidationReport

logger = logging.getLogger(__name__)

SERVER_CONTROLLED_KEYS = ("uuId", "version")


def _payload(rule: Rule | dict[str, Any]) -> dict[str, Any]:
    return serialize_rule(rule) if isinstance(rule, Rule) else strip(rule)


def storage_payload(rule: Rule | dict[str, Any]) -> dict[str, Any]:
    """Persisted rule JSON without the server-controlled keys."""
    return {k: v for k, v in _payload(rule).items() if k not in SERVER_CONTROLLED_KEYS}


def _segment(value: Any) -> str:
    return quote(str(value), safe="")


class RuleServiceClient(RuleServiceHttpClient):
    # -------------------------------------------------------------------
    # Validation and SQL generation
    # -------------------------------------------------------------------

    def validate(self, rule: Rule | dict[str, Any]) -> ValidationReport:
        """Server-side schema validation; reports every problem found."""
        body = self.request("POST", "/rules/validate", "/rules/validate", json=_payload(rule))
        report = ValidationReport.model_validate(body or {})
        status = "valid" if report.valid else "invalid"
        metrics.validations_total.labels(source="remote", status=status).inc()
        if not report.valid:
            metrics.validation_errors_count.labels(source="remote").observe(len(report.errors))
        return report

    def generate_sql(self, rule: Rule | dict[str, Any]) -> SqlResult:
        body = self.request("POST", "/rules/to-sql", "/rules/to-sql", json=_payload(rule))
        return SqlResult.model_validate(body or {})

    # -------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------

    def create_rule(self, rule: Rule | dict[str, Any]) -> SaveResult:
        body = self.request("POST", "/rules", "/rules", json=storage_payload(rule))
        result = SaveResult.model_validate(body)
        set_rule_uuid(result.uuid)
        logger.info(
            "Rule created", extra={"rule_uuid": result.uuid, "version": result.version}
        )
        return result

    def update_rule(self, uuid: str, rule: Rule | dict[str, Any]) -> SaveResult:
        """Store a new version of an existing rule."""
        body = self.request(
            "PUT", f"/rules/{_segment(uuid)}", "/rules/{uuid}", json=storage_payload(rule)
        )
        result = SaveResult.model_validate(body)
        logger.info(
            "Rule updated", extra={"rule_uuid": result.uuid, "version": result.version}
        )
        return result

    def save_rule(self, rule: Rule) -> SaveResult:
        """Create the rule when it has no uuid yet, otherwise add a version."""
        if rule.uuid:
            return self.update_rule(rule.uuid, rule)
        return self.create_rule(rule)

    def list_versions(self, uuid: str) -> list[dict[str, Any]]:
        body = self.request(
            "GET", f"/rules/{_segment(uuid)}/versions", "/rules/{uuid}/versions"
        )
        if isinstance(body, dict):
            body = body.get("versions", [])
        return list(body or [])

    def get_version(self, uuid: str, version: int) -> Rule:
        """Fetch one stored version and parse it into a Rule."""
        body = self.request(
            "GET",
            f"/rules/{_segment(uuid)}/versions/{_segment(version)}",
            "/rules/{uuid}/versions/{version}",
        )
        if not isinstance(body, dict):
            raise ServiceError(
                f"Rule {uuid} version {version} came back empty",
                details={"uuid": uuid, "version": version},
            )
        rule = parse_rule(body)
        set_rule_uuid(rule.uuid or uuid)
        return rule

    def restore_version(self, uuid: str, version: int) -> str | None:
        body = self.request(
            "POST",
            f"/rules/{_segment(uuid)}/versions/{_segment(version)}/restore",
            "/rules/{uuid}/versions/{version}/restore",
        )
        logger.info("Rule version restored", extra={"rule_uuid": uuid, "version": version})
        return body if isinstance(body, str) else None

    def list_rule_ids(self, rule_type: str | None = None) -> list[Any]:
        """Rule ids available for rule references, optionally filtered by type."""
        body = self.request("GET", "/rules/ids", "/rules/ids", params={"ruleType": rule_type})
        if isinstance(body, dict):
            body = body.get("ruleIds", body.get("rules", []))
        return list(body or [])
