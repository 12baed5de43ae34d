"""
SQLite Adapter Module

This module contains the SQLiteAdapter that stores one entity per table and
serves the repository operations against it, with retry logic for locked
databases and schema discovery from the table definition.
"""

import json
import logging
import re
import sqlite3
from typing import Any, Dict, List, Optional, Tuple

from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from .base import DataSourceAdapter, ErrorCodes, RepositoryError
from .query import matches_where, process_find_many

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _is_locked(error: BaseException) -> bool:
    return isinstance(error, sqlite3.OperationalError) and (
        "locked" in str(error) or "busy" in str(error)
    )


def _json_type(sql_type: str) -> str:
    """Map a declared SQLite column type to a JSON-schema type name."""
    dtype = (sql_type or "").upper()
    if "INT" in dtype:
        return "integer"
    if any(x in dtype for x in ("REAL", "FLOA", "DOUB", "NUMERIC", "DEC")):
        return "number"
    if "BOOL" in dtype:
        return "boolean"
    return "string"


def describe_table(conn: sqlite3.Connection, table: str) -> Dict[str, Any]:
    """Return a schema object (``properties`` / ``required``) for ``table``."""
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for row in conn.execute(f"PRAGMA table_info({table})").fetchall():
        name, dtype, not_null, primary_key = row[1], row[2], bool(row[3]), bool(row[5])
        description = f"{(dtype or 'TEXT').upper()}{' primary key' if primary_key else ''}"
        properties[name] = {"type": _json_type(dtype), "description": description}
        if not_null or primary_key:
            required.append(name)
    return {"type": "object", "properties": properties, "required": required}


class SQLiteAdapter(DataSourceAdapter):
    """
    Serves one entity from one SQLite table.

    Features:
    - Automatic retry when the database is locked or busy
    - Integrity errors surfaced as ``CONFLICT`` repository errors
    - Unknown columns rejected before any statement is issued
    """

    source = "sqlite"

    def __init__(self, db_path: str, table: str):
        if not _IDENTIFIER.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self.db_path = db_path
        self.table = table

    # ------------------------------------------------------------------
    # Low level helpers
    # ------------------------------------------------------------------
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(_is_locked),
        reraise=True,
    )
    def _execute(self, statements: List[Tuple[str, Tuple[Any, ...]]]) -> List[Dict[str, Any]]:
        """Run ``statements`` in one transaction and return rows of the last one."""
        try:
            with self._connect() as conn:
                rows: List[sqlite3.Row] = []
                for sql, params in statements:
                    rows = conn.execute(sql, params).fetchall()
                return [dict(row) for row in rows]
        except sqlite3.IntegrityError as e:
            raise RepositoryError(ErrorCodes.CONFLICT, str(e)) from e

    def schema(self) -> Dict[str, Any]:
        with self._connect() as conn:
            return describe_table(conn, self.table)

    def _columns(self) -> List[str]:
        return list(self.schema()["properties"].keys())

    def _encode(self, data: Dict[str, Any]) -> Dict[str, Any]:
        columns = self._columns()
        unknown = [k for k in data if k not in columns]
        if unknown:
            raise RepositoryError(
                ErrorCodes.BAD_REQUEST,
                f"Unknown column(s) for {self.table}: {', '.join(unknown)}",
            )
        return {
            k: json.dumps(v) if isinstance(v, (dict, list)) else v
            for k, v in data.items()
        }

    def _rows(self) -> List[Dict[str, Any]]:
        return self._execute([(f"SELECT rowid AS __rowid__, * FROM {self.table}", ())])

    @staticmethod
    def _strip(row: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in row.items() if k != "__rowid__"}

    def _matching_rows(self, where: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [row for row in self._rows() if matches_where(self._strip(row), where)]

    def _fetch_rowid(self, rowid: int) -> Dict[str, Any]:
        rows = self._execute([(f"SELECT * FROM {self.table} WHERE rowid = ?", (rowid,))])
        return rows[0] if rows else {}

    def _update_rowid(self, rowid: int, data: Dict[str, Any]) -> Dict[str, Any]:
        encoded = self._encode(data)
        if encoded:
            assignments = ", ".join(f"{k} = ?" for k in encoded)
            self._execute([
                (f"UPDATE {self.table} SET {assignments} WHERE rowid = ?", (*encoded.values(), rowid))
            ])
        return self._fetch_rowid(rowid)

    # ------------------------------------------------------------------
    # Repository operations
    # ------------------------------------------------------------------
    def find_many(self, options: Dict[str, Any]) -> List[Dict[str, Any]]:
        return process_find_many((self._strip(r) for r in self._rows()), options)

    def find_one(self, options: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        matches = self._matching_rows((options or {}).get("where"))
        return self._strip(matches[0]) if matches else None

    def create(self, options: Dict[str, Any]) -> Dict[str, Any]:
        data = (options or {}).get("data")
        if not isinstance(data, dict) or not data:
            raise RepositoryError(ErrorCodes.BAD_REQUEST, "create requires a data object")
        encoded = self._encode(data)
        columns = ", ".join(encoded)
        placeholders = ", ".join("?" for _ in encoded)
        rows = self._execute([
            (f"INSERT INTO {self.table} ({columns}) VALUES ({placeholders})", tuple(encoded.values())),
            (f"SELECT * FROM {self.table} WHERE rowid = last_insert_rowid()", ()),
        ])
        logger.debug(f"Inserted into {self.table}: {list(encoded)}")
        return rows[0] if rows else dict(data)

    def create_many(self, options: Dict[str, Any]) -> List[Dict[str, Any]]:
        items = (options or {}).get("data")
        if not isinstance(items, list):
            raise RepositoryError(ErrorCodes.BAD_REQUEST, "createMany requires a data array")
        return [self.create({"data": item}) for item in items]

    def update(self, options: Dict[str, Any]) -> Dict[str, Any]:
        options = options or {}
        matches = self._matching_rows(options.get("where"))
        if not matches:
            raise RepositoryError(ErrorCodes.NOT_FOUND, "Item not found")
        return self._update_rowid(matches[0]["__rowid__"], options.get("data") or {})

    def update_many(self, options: Dict[str, Any]) -> List[Dict[str, Any]]:
        options = options or {}
        if "where" not in options:
            raise RepositoryError(ErrorCodes.BAD_REQUEST, "updateMany requires a where clause")
        return [
            self._update_rowid(row["__rowid__"], options.get("data") or {})
            for row in self._matching_rows(options["where"])
        ]

    def delete(self, options: Dict[str, Any]) -> bool:
        matches = self._matching_rows((options or {}).get("where"))
        if not matches:
            return False
        rowids = tuple(row["__rowid__"] for row in matches)
        placeholders = ", ".join("?" for _ in rowids)
        self._execute([(f"DELETE FROM {self.table} WHERE rowid IN ({placeholders})", rowids)])
        return True

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
            if item.get(target):
                results.append(self.upsert({"where": {target: item[target]}, "create": item, "update": item}))
            else:
                results.append(self.create({"data": item}))
        return results
