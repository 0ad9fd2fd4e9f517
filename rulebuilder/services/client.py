"""
Base HTTP client for the rule services.

Wraps a synchronous ``httpx.Client``: every call is timed and counted in the
HTTP client metrics, and transport failures or error statuses surface as
``ServiceError``.
"""

import logging
from typing import Any

import httpx

from rulebuilder.core.config import settings
from rulebuilder.core.errors import ServiceError
from rulebuilder.core.observability import get_session_id, track_http_call

logger = logging.getLogger(__name__)


class RuleServiceHttpClient:
    """Shared plumbing for the catalog and rule service clients."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ):
        self.base_url = (base_url or settings.rule_service_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.client = client or httpx.Client(timeout=self.timeout)

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        session_id = get_session_id()
        if session_id:
            headers["X-Session-ID"] = session_id
        return headers

    def request(
        self,
        method: str,
        path: str,
        endpoint: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Perform a request and decode its JSON body.

        Args:
            method: HTTP method
            path: Path below the base URL, with parameters filled in
            endpoint: Path template used as the metrics label
            json: Request body
            params: Query parameters; None values are dropped

        Returns:
            Decoded JSON body, the raw text for non-JSON bodies, or None when
            the body is empty

        Raises:
            ServiceError: On transport failures and 4xx/5xx responses
        """
        url = self.base_url + path
        query = {k: v for k, v in (params or {}).items() if v is not None}

        with track_http_call(method, endpoint) as ctx:
            try:
                response = self.client.request(
                    method, url, json=json, params=query or None, headers=self._headers()
                )
            except httpx.HTTPError as e:
                logger.warning(
                    "Rule service request failed",
                    extra={"method": method, "endpoint": endpoint, "error": str(e)},
                )
                raise ServiceError(
                    f"{method} {endpoint} failed: {e}", details={"url": url}
                ) from e
            ctx.status_code = response.status_code

        if response.is_error:
            message = _error_message(response)
            logger.warning(
                "Rule service returned an error",
                extra={
                    "method": method,
                    "endpoint": endpoint,
                    "status_code": response.status_code,
                },
            )
            raise ServiceError(
                f"{method} {endpoint} returned {response.status_code}: {message}",
                status_code=response.status_code,
                details={"url": url},
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or body)
    return str(body)
