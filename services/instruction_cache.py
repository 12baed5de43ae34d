"""Cache for rendered planning instructions, keyed by the schema input they came from."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


def fingerprint(
    entity_schemas: Dict[str, Any],
    entity_sources: Dict[str, List[str]],
    entity_configs: Dict[str, Any],
) -> str:
    """SHA-256 of the canonical JSON form of the merged entity information."""
    payload = json.dumps(
        {"schemas": entity_schemas, "sources": entity_sources, "configs": entity_configs},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class InstructionCache:
    """Holds one instruction document until the entity information changes."""

    def __init__(self):
        self._lock = threading.Lock()
        self._key: Optional[str] = None
        self._instructions: Optional[str] = None

    @property
    def key(self) -> Optional[str]:
        return self._key

    def get_or_build(
        self,
        entity_schemas: Dict[str, Any],
        entity_sources: Dict[str, List[str]],
        entity_configs: Dict[str, Any],
        builder: Callable[[Dict[str, Any], Dict[str, List[str]], Dict[str, Any]], str],
    ) -> str:
        key = fingerprint(entity_schemas, entity_sources, entity_configs)
        with self._lock:
            if key == self._key and self._instructions is not None:
                return self._instructions
            logger.info(f"Building planning instructions (key {key[:12]})")
            self._instructions = builder(entity_schemas, entity_sources, entity_configs)
            self._key = key
            return self._instructions

    def invalidate(self) -> None:
        with self._lock:
            self._key = None
            self._instructions = None
