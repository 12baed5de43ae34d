"""
Repository registry.

Collects data adapters per (entity, source) together with entity schemas and
per-entity configuration, and exposes them through the repository interface
the plan agent consumes.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .base import DataSourceAdapter, ErrorCodes, RepositoryError, simplify_entity_name

logger = logging.getLogger(__name__)


class RepositoryRegistry:
    """In-process repository: ``registry.repo("user", "memory").find_many({})``."""

    def __init__(self):
        self._adapters: Dict[str, Dict[str, DataSourceAdapter]] = {}
        self._schemas: Dict[str, Dict[str, Any]] = {}
        self._configs: Dict[str, Dict[str, Any]] = {}
        self._display_names: Dict[str, str] = {}

    def register_entity(
        self,
        name: str,
        schema: Optional[Dict[str, Any]] = None,
        default_source: Optional[str] = None,
    ) -> None:
        """Declare an entity (e.g. ``UserEntity``) with its schema object."""
        key = simplify_entity_name(name)
        self._display_names[key] = name
        if schema is not None:
            self._schemas[key] = schema
        if default_source:
            self._configs.setdefault(key, {})["defaultSource"] = default_source

    def register_adapter(self, entity: str, adapter: DataSourceAdapter, source: Optional[str] = None) -> None:
        key = simplify_entity_name(entity)
        source = source or adapter.source
        if not source:
            raise ValueError(f"Adapter {type(adapter).__name__} has no source name")
        self._display_names.setdefault(key, entity)
        self._adapters.setdefault(key, {})[source] = adapter
        if key not in self._schemas and hasattr(adapter, "schema"):
            self._schemas[key] = adapter.schema()
        logger.info(f"Registered {type(adapter).__name__} for {entity} (source: {source})")

    def repo(self, entity: str, source: str) -> DataSourceAdapter:
        key = simplify_entity_name(entity)
        sources = self._adapters.get(key)
        if not sources:
            raise RepositoryError(ErrorCodes.NOT_FOUND, f"Unknown entity: {entity}")
        adapter = sources.get(source)
        if adapter is None:
            raise RepositoryError(
                ErrorCodes.NOT_FOUND,
                f"Source '{source}' is not registered for entity {entity}",
            )
        return adapter

    def get_entity_schemas(self) -> Dict[str, Dict[str, Any]]:
        return {self._display_names[k]: schema for k, schema in self._schemas.items()}

    def get_entity_sources(self) -> Dict[str, List[str]]:
        return {self._display_names[k]: list(sources) for k, sources in self._adapters.items()}

    def get_entity_configs(self) -> Dict[str, Dict[str, Any]]:
        return {k: dict(cfg) for k, cfg in self._configs.items()}
