"""Rule builder configuration using Pydantic Settings.

This project loads configuration from environment variables.

Optionally, you may point `ENV_FILE` at a local env file (for development).
"""

import os
from enum import Enum

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppEnvironment(str, Enum):
    """Application environment values."""

    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class Settings(BaseSettings):
    """
    Rule builder settings with type validation.

    Configuration is loaded from environment variables, with support
    for .env files in development.
    """

    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE") or None, env_prefix="", extra="ignore"
    )

    # Application
    app_env: AppEnvironment = AppEnvironment.LOCAL
    app_log_level: str = "INFO"

    # Observability
    observability_structured_logs: bool = True

    # External rule services (catalog, validation, SQL generation, storage)
    rule_service_base_url: str = "http://localhost:8080/api/v1"
    http_timeout_seconds: float = 30.0

    # Catalog-independent defaults used when a catalog does not provide one
    default_rule_type: str = "Reporting"
    default_field_path: str = "TABLE1.NUMBER_FIELD_01"
    default_return_type: str = "number"
    default_condition_operator: str = "equal"

    # Local validation limits
    max_condition_depth: int = 10

    @field_validator("app_env", mode="before")
    @classmethod
    def validate_app_env(cls, v: str | AppEnvironment) -> AppEnvironment:
        """Validate and parse app_env to AppEnvironment enum."""
        if isinstance(v, AppEnvironment):
            return v
        try:
            return AppEnvironment(v.lower())
        except ValueError:
            raise ValueError(
                f"app_env must be one of {[e.value for e in AppEnvironment]}, got '{v}'"
            )

    @field_validator("rule_service_base_url")
    @classmethod
    def validate_rule_service_base_url(cls, v: str) -> str:
        """Require an http(s) base URL and drop any trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"rule_service_base_url must use http:// or https://, got '{v}'")
        return v.rstrip("/")

    @field_validator("max_condition_depth")
    @classmethod
    def validate_max_condition_depth(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_condition_depth must be at least 1")
        return v


settings = Settings()
