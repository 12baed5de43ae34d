"""
Repository Interface Module

Defines the schema-aware CRUD boundary the plan agent drives. The agent only
ever talks to an object satisfying :class:`Repository`; the adapters in this
package are reference implementations used by the CLI and the tests.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Protocol


class ErrorCodes:
    BAD_REQUEST = 400
    NOT_FOUND = 404
    CONFLICT = 409
    INTERNAL_SERVER_ERROR = 500


class RepositoryError(Exception):
    """Raised by adapters when an operation cannot be satisfied."""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


def simplify_entity_name(name: str) -> str:
    """Normalize ``UserEntity`` / ``user_entity`` / ``User`` to ``user``."""
    simplified = re.sub(r"_?entity$", "", name.strip(), flags=re.I)
    return simplified.lower()


class DataSourceAdapter:
    """
    Base class for a single (entity, source) data adapter.

    Every method receives the options object decoded from the pseudo-code
    call, e.g. ``{"where": {"id": "1"}}`` or ``{"data": {...}}``.
    Unimplemented operations raise a ``RepositoryError``.
    """

    source: str = ""

    def find_many(self, options: Dict[str, Any]) -> List[Dict[str, Any]]:
        raise self._unsupported("findMany")

    def find_one(self, options: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        raise self._unsupported("findOne")

    def create(self, options: Dict[str, Any]) -> Dict[str, Any]:
        raise self._unsupported("create")

    def create_many(self, options: Dict[str, Any]) -> List[Dict[str, Any]]:
        raise self._unsupported("createMany")

    def update(self, options: Dict[str, Any]) -> Dict[str, Any]:
        raise self._unsupported("update")

    def update_many(self, options: Dict[str, Any]) -> List[Dict[str, Any]]:
        raise self._unsupported("updateMany")

    def upsert(self, options: Dict[str, Any]) -> Dict[str, Any]:
        raise self._unsupported("upsert")

    def upsert_many(self, options: Dict[str, Any]) -> List[Dict[str, Any]]:
        raise self._unsupported("upsertMany")

    def delete(self, options: Dict[str, Any]) -> bool:
        raise self._unsupported("delete")

    def _unsupported(self, operation: str) -> RepositoryError:
        return RepositoryError(
            ErrorCodes.BAD_REQUEST,
            f"{type(self).__name__} does not support {operation}",
        )


class Repository(Protocol):
    """The external repository interface consumed by the plan agent."""

    def repo(self, entity: str, source: str) -> DataSourceAdapter: ...

    def get_entity_schemas(self) -> Dict[str, Dict[str, Any]]: ...

    def get_entity_sources(self) -> Dict[str, List[str]]: ...

    def get_entity_configs(self) -> Dict[str, Dict[str, Any]]: ...
