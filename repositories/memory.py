"""In-memory data adapter backed by a list of dict records."""
from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional

from .base import DataSourceAdapter, ErrorCodes, RepositoryError
from .query import matches_where, process_find_many

logger = logging.getLogger(__name__)


class MemoryAdapter(DataSourceAdapter):
    """Keeps records in process memory; the default ``memory`` source."""

    source = "memory"

    def __init__(self, data: Optional[List[Dict[str, Any]]] = None):
        self.data: List[Dict[str, Any]] = [dict(r) for r in (data or [])]

    def find_many(self, options: Dict[str, Any]) -> List[Dict[str, Any]]:
        return copy.deepcopy(process_find_many(self.data, options))

    def find_one(self, options: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        where = (options or {}).get("where") or {}
        for record in self.data:
            if matches_where(record, where):
                return copy.deepcopy(record)
        return None

    def create(self, options: Dict[str, Any]) -> Dict[str, Any]:
        data = (options or {}).get("data")
        if not isinstance(data, dict):
            raise RepositoryError(ErrorCodes.BAD_REQUEST, "create requires a data object")
        record = dict(data)
        self.data.append(record)
        return copy.deepcopy(record)

    def create_many(self, options: Dict[str, Any]) -> List[Dict[str, Any]]:
        items = (options or {}).get("data")
        if not isinstance(items, list):
            raise RepositoryError(ErrorCodes.BAD_REQUEST, "createMany requires a data array")
        return [self.create({"data": item}) for item in items]

    def update(self, options: Dict[str, Any]) -> Dict[str, Any]:
        options = options or {}
        where = options.get("where") or {}
        for index, record in enumerate(self.data):
            if matches_where(record, where):
                updated = {**record, **(options.get("data") or {})}
                self.data[index] = updated
                return copy.deepcopy(updated)
        raise RepositoryError(ErrorCodes.NOT_FOUND, "Item not found")

    def update_many(self, options: Dict[str, Any]) -> List[Dict[str, Any]]:
        options = options or {}
        if "where" not in options:
            raise RepositoryError(ErrorCodes.BAD_REQUEST, "updateMany requires a where clause")
        updated_items = []
        for index, record in enumerate(self.data):
            if matches_where(record, options["where"]):
                updated = {**record, **(options.get("data") or {})}
                self.data[index] = updated
                updated_items.append(copy.deepcopy(updated))
        return updated_items

    def delete(self, options: Dict[str, Any]) -> bool:
        where = (options or {}).get("where") or {}
        before = len(self.data)
        self.data = [r for r in self.data if not matches_where(r, where)]
        logger.debug(f"MemoryAdapter deleted {before - len(self.data)} record(s)")
        return len(self.data) < before

    def upsert(self, options: Dict[str, Any]) -> Dict[str, Any]:
        options = options or {}
        if self.find_one({"where": options.get("where") or {}}) is not None:
            return self.update({"where": options.get("where"), "data": options.get("update") or {}})
        return self.create({"data": options.get("create") or {}})

    def upsert_many(self, options: Dict[str, Any]) -> List[Dict[str, Any]]:
        options = options or {}
        target = ((options.get("onConflictDoUpdate") or {}).get("target")) or "id"
        results = []
        for item in options.get("data") or []:
            key = item.get(target)
            if key:
                results.append(self.upsert({"where": {target: key}, "create": item, "update": item}))
            else:
                results.append(self.create({"data": item}))
        return results
