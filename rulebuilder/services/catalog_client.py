"""Client for the catalog service (field, function and operator definitions)."""

import logging
from typing import Any

from rulebuilder.catalog.loader import load_catalog
from rulebuilder.catalog.registry import Catalog
from rulebuilder.core.errors import ServiceError
from rulebuilder.services.client import RuleServiceHttpClient

logger = logging.getLogger(__name__)


class CatalogClient(RuleServiceHttpClient):
    def fetch_config(self) -> dict[str, Any]:
        """Raw UI configuration: functions, operators, types and settings."""
        config = self.request("GET", "/rules/ui/config", "/rules/ui/config")
        if not isinstance(config, dict):
            raise ServiceError("Catalog service returned a non-object configuration")
        return config

    def fetch_field_hierarchy(self) -> dict[str, Any]:
        fields = self.request("GET", "/fields/hierarchy", "/fields/hierarchy")
        if not isinstance(fields, dict):
            raise ServiceError("Catalog service returned a non-object field hierarchy")
        return fields

    def load(self) -> Catalog:
        """
        Fetch and load the catalog.

        Fields come from the UI configuration when it carries them and from
        the field hierarchy endpoint otherwise.
        """
        config = self.fetch_config()
        if not config.get("fields"):
            config = {**config, "fields": self.fetch_field_hierarchy()}
        catalog = load_catalog(config)
        logger.info("Catalog fetched", extra={"base_url": self.base_url})
        return catalog
