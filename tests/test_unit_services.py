"""
Unit tests for the rule service HTTP clients.

Tests cover:
- Request paths, methods and payloads for catalog, validation, SQL and storage
- Server-controlled keys removed from storage payloads
- Response parsing into ValidationReport / SqlResult / SaveResult
- Error statuses and transport failures surfacing as ServiceError
- Session correlation header and HTTP client metrics

All HTTP traffic goes through httpx.MockTransport.
"""

import json

import httpx
import pytest

from rulebuilder.compiler import serialize_rule
from rulebuilder.core.errors import SchemaValidationFailed, ServiceError
from rulebuilder.core.observability import get_rule_uuid, metrics, set_session_id
from rulebuilder.services import (
    CatalogClient,
    RuleServiceClient,
    SqlResult,
    ValidationReport,
    storage_payload,
)
from tests.conftest import catalog_payload

BASE_URL = "http://rules.test/api/v1"


class Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, routes: dict[tuple[str, str], httpx.Response | Exception]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, json={"error": "not found"})
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self):
        return json.loads(self.last.content)


def _client(cls, routes):
    recorder = Recorder(routes)
    http = httpx.Client(transport=httpx.MockTransport(recorder))
    return cls(base_url=BASE_URL, client=http), recorder


def _sample(name: str, labels: dict[str, str]) -> float:
    return metrics.registry.get_sample_value(name, labels) or 0.0


class TestCatalogClient:
    """Tests for catalog fetching."""

    def test_load_from_config(self):
        routes = {("GET", "/api/v1/rules/ui/config"): httpx.Response(200, json=catalog_payload())}
        client, recorder = _client(CatalogClient, routes)
        with client:
            catalog = client.load()
        assert catalog.resolve_field("TABLE1.NUMBER_FIELD_01") is not None
        assert len(recorder.requests) == 1

    def test_fields_from_hierarchy_when_config_has_none(self):
        config = catalog_payload()
        fields = config.pop("fields")
        routes = {
            ("GET", "/api/v1/rules/ui/config"): httpx.Response(200, json=config),
            ("GET", "/api/v1/fields/hierarchy"): httpx.Response(200, json=fields),
        }
        client, recorder = _client(CatalogClient, routes)
        catalog = client.load()
        assert catalog.resolve_field("TABLE2.FLAG_01").type == "boolean"
        assert [r.url.path for r in recorder.requests] == [
            "/api/v1/rules/ui/config",
            "/api/v1/fields/hierarchy",
        ]

    def test_non_object_config(self):
        routes = {("GET", "/api/v1/rules/ui/config"): httpx.Response(200, json=[1, 2])}
        client, _ = _client(CatalogClient, routes)
        with pytest.raises(ServiceError):
            client.fetch_config()

    def test_malformed_catalog(self):
        config = catalog_payload()
        config["functions"]["MATH.SUM"]["argSpec"]["maxArgs"] = 1
        routes = {("GET", "/api/v1/rules/ui/config"): httpx.Response(200, json=config)}
        client, _ = _client(CatalogClient, routes)
        with pytest.raises(SchemaValidationFailed):
            client.load()


class TestValidationAndSql:
    """Tests for server-side validation and SQL generation."""

    def test_validate_sends_persisted_json(self, condition_rule):
        routes = {
            ("POST", "/api/v1/rules/validate"): httpx.Response(
                200, json={"valid": True, "errors": [], "schemaVersion": "1.4"}
            )
        }
        client, recorder = _client(RuleServiceClient, routes)
        report = client.validate(condition_rule)
        assert isinstance(report, ValidationReport)
        assert report.valid
        assert report.schema_version == "1.4"
        assert recorder.last_json() == serialize_rule(condition_rule)

    def test_validate_reports_every_problem(self, condition_rule):
        errors = [
            {"path": "$.definition.conditions[0].left", "message": "unknown field"},
            {"path": "$.returnType", "message": "mismatch"},
        ]
        routes = {("POST", "/api/v1/rules/validate"): httpx.Response(200, json={"errors": errors})}
        client, _ = _client(RuleServiceClient, routes)
        before = _sample(
            "rulebuilder_validations_total", {"source": "remote", "status": "invalid"}
        )

        report = client.validate(condition_rule)

        assert not report.valid
        assert report.as_problems() == errors
        after = _sample("rulebuilder_validations_total", {"source": "remote", "status": "invalid"})
        assert after == before + 1

    def test_validate_strips_editor_state(self):
        routes = {("POST", "/api/v1/rules/validate"): httpx.Response(200, json={"valid": True})}
        client, recorder = _client(RuleServiceClient, routes)
        client.validate(
            {"structure": "condition", "definition": {"type": "conditionGroup", "id": "g"}}
        )
        assert recorder.last_json() == {
            "structure": "condition",
            "definition": {"type": "conditionGroup"},
        }

    def test_generate_sql(self, condition_rule):
        routes = {
            ("POST", "/api/v1/rules/to-sql"): httpx.Response(
                200, json={"sql": "SELECT 1", "errors": ["warning: slow"]}
            )
        }
        client, _ = _client(RuleServiceClient, routes)
        result = client.generate_sql(condition_rule)
        assert isinstance(result, SqlResult)
        assert result.sql == "SELECT 1"
        assert result.errors[0].message == "warning: slow"
        assert result.errors[0].path == "$"


class TestStorage:
    """Tests for versioned rule storage."""

    def test_storage_payload_drops_server_keys(self, condition_rule):
        rule = condition_rule.model_copy(update={"uuid": "u-1", "version": 3})
        payload = storage_payload(rule)
        assert "uuId" not in payload
        assert "version" not in payload
        assert list(payload) == ["structure", "returnType", "ruleType", "metadata", "definition"]

    def test_create_rule(self, condition_rule):
        routes = {
            ("POST", "/api/v1/rules"): httpx.Response(
                201, json={"uuid": "u-1", "version": 1, "ruleId": "RULE_1"}
            )
        }
        client, recorder = _client(RuleServiceClient, routes)
        result = client.save_rule(condition_rule)
        assert (result.uuid, result.version, result.rule_id) == ("u-1", 1, "RULE_1")
        assert "uuId" not in recorder.last_json()
        assert get_rule_uuid() == "u-1"

    def test_save_existing_rule_updates(self, condition_rule):
        rule = condition_rule.model_copy(update={"uuid": "u-1", "version": 1})
        routes = {
            ("PUT", "/api/v1/rules/u-1"): httpx.Response(200, json={"uuid": "u-1", "version": 2})
        }
        client, recorder = _client(RuleServiceClient, routes)
        result = client.save_rule(rule)
        assert result.version == 2
        assert recorder.last.method == "PUT"

    def test_versions(self, case_rule):
        stored = {**serialize_rule(case_rule), "uuId": "u-9", "version": 2}
        routes = {
            ("GET", "/api/v1/rules/u-9/versions"): httpx.Response(
                200, json={"versions": [{"version": 1}, {"version": 2}]}
            ),
            ("GET", "/api/v1/rules/u-9/versions/2"): httpx.Response(200, json=stored),
            ("POST", "/api/v1/rules/u-9/versions/1/restore"): httpx.Response(
                200, text="restored"
            ),
        }
        client, _ = _client(RuleServiceClient, routes)

        assert client.list_versions("u-9") == [{"version": 1}, {"version": 2}]
        rule = client.get_version("u-9", 2)
        assert (rule.uuid, rule.version) == ("u-9", 2)
        assert rule.return_type == "text"
        assert client.restore_version("u-9", 1) == "restored"

    def test_list_rule_ids_filters_by_type(self):
        routes = {("GET", "/api/v1/rules/ids"): httpx.Response(200, json={"ruleIds": ["A", "B"]})}
        client, recorder = _client(RuleServiceClient, routes)
        assert client.list_rule_ids("Scoring") == ["A", "B"]
        assert recorder.last.url.params["ruleType"] == "Scoring"

        client.list_rule_ids()
        assert "ruleType" not in recorder.last.url.params

    def test_path_segments_are_quoted(self):
        routes = {}
        client, recorder = _client(RuleServiceClient, routes)
        with pytest.raises(ServiceError):
            client.list_versions("a/b")
        assert recorder.last.url.raw_path == b"/api/v1/rules/a%2Fb/versions"


class TestErrors:
    """Tests for error surfacing and request plumbing."""

    def test_error_status(self, condition_rule):
        routes = {
            ("POST", "/api/v1/rules"): httpx.Response(409, json={"error": "Duplicate rule id"})
        }
        client, _ = _client(RuleServiceClient, routes)
        with pytest.raises(ServiceError) as exc_info:
            client.create_rule(condition_rule)
        assert exc_info.value.status_code == 409
        assert "Duplicate rule id" in exc_info.value.message

    def test_transport_failure(self, condition_rule):
        routes = {("POST", "/api/v1/rules/validate"): httpx.ConnectError("connection refused")}
        client, _ = _client(RuleServiceClient, routes)
        before = _sample(
            "rulebuilder_http_client_requests_total",
            {"method": "POST", "endpoint": "/rules/validate", "status_code": "error"},
        )
        with pytest.raises(ServiceError) as exc_info:
            client.validate(condition_rule)
        assert exc_info.value.status_code is None
        after = _sample(
            "rulebuilder_http_client_requests_total",
            {"method": "POST", "endpoint": "/rules/validate", "status_code": "error"},
        )
        assert after == before + 1

    def test_session_header(self):
        routes = {("GET", "/api/v1/rules/ids"): httpx.Response(200, json=[])}
        client, recorder = _client(RuleServiceClient, routes)
        set_session_id("session-123")
        client.list_rule_ids()
        assert recorder.last.headers["X-Session-ID"] == "session-123"

    def test_no_session_header_without_session(self):
        routes = {("GET", "/api/v1/rules/ids"): httpx.Response(200, json=[])}
        client, recorder = _client(RuleServiceClient, routes)
        client.list_rule_ids()
        assert "X-Session-ID" not in recorder.last.headers

    def test_empty_body(self):
        routes = {("GET", "/api/v1/rules/ids"): httpx.Response(204)}
        client, _ = _client(RuleServiceClient, routes)
        assert client.list_rule_ids() == []

    def test_status_metric_recorded(self):
        routes = {("GET", "/api/v1/rules/ids"): httpx.Response(200, json=[])}
        client, _ = _client(RuleServiceClient, routes)
        labels = {"method": "GET", "endpoint": "/rules/ids", "status_code": "200"}
        before = _sample("rulebuilder_http_client_requests_total", labels)
        client.list_rule_ids()
        assert _sample("rulebuilder_http_client_requests_total", labels) == before + 1
