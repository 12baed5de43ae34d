"""
Query helpers shared by the repository adapters.

Implements ``where`` matching, ``order_by`` sorting and ``limit``/``offset``
pagination over plain dict records. Operators may be written with or without
a leading ``$`` (``{"age": {"gt": 18}}`` and ``{"age": {"$gt": 18}}`` are
equivalent).
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional

OPERATORS = (
    "eq", "ne", "gt", "gte", "lt", "lte", "in", "nin",
    "contains", "startsWith", "endsWith", "not", "mode",
)


def _normalize_operator(key: str) -> str:
    return key[1:] if key.startswith("$") else key


def _is_operator_block(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and bool(value)
        and all(_normalize_operator(k) in OPERATORS for k in value)
    )


def _compare(left: Any, right: Any, fn: Callable[[Any, Any], bool]) -> bool:
    if left is None or right is None:
        return False
    try:
        return fn(left, right)
    except TypeError:
        return False


def _match_operators(actual: Any, block: Dict[str, Any]) -> bool:
    insensitive = str(block.get("mode", block.get("$mode", ""))).lower() == "insensitive"

    def _text(v: Any) -> str:
        text = "" if v is None else str(v)
        return text.lower() if insensitive else text

    for raw_op, expected in block.items():
        op = _normalize_operator(raw_op)
        if op == "mode":
            continue
        if op == "eq":
            ok = actual == expected
        elif op == "ne":
            ok = actual != expected
        elif op == "not":
            ok = not _match_value(actual, expected)
        elif op == "gt":
            ok = _compare(actual, expected, lambda a, b: a > b)
        elif op == "gte":
            ok = _compare(actual, expected, lambda a, b: a >= b)
        elif op == "lt":
            ok = _compare(actual, expected, lambda a, b: a < b)
        elif op == "lte":
            ok = _compare(actual, expected, lambda a, b: a <= b)
        elif op == "in":
            ok = actual in (expected or [])
        elif op == "nin":
            ok = actual not in (expected or [])
        elif op == "contains":
            ok = actual is not None and _text(expected) in _text(actual)
        elif op == "startsWith":
            ok = actual is not None and _text(actual).startswith(_text(expected))
        elif op == "endsWith":
            ok = actual is not None and _text(actual).endswith(_text(expected))
        else:  # pragma: no cover - OPERATORS is exhaustive
            ok = False
        if not ok:
            return False
    return True


def _match_value(actual: Any, expected: Any) -> bool:
    if _is_operator_block(expected):
        return _match_operators(actual, expected)
    return actual == expected


def matches_where(record: Dict[str, Any], where: Optional[Dict[str, Any]]) -> bool:
    """Return True when ``record`` satisfies every condition in ``where``."""
    if not where:
        return True
    return all(_match_value(record.get(key), expected) for key, expected in where.items())


def apply_sorting(records: List[Dict[str, Any]], order_by: Optional[Dict[str, str]]) -> List[Dict[str, Any]]:
    if not order_by:
        return records
    result = list(records)
    # Stable sorts applied from the least significant key backwards
    for field, direction in reversed(list(order_by.items())):
        present = [r for r in result if r.get(field) is not None]
        missing = [r for r in result if r.get(field) is None]
        present.sort(key=lambda r: r[field], reverse=str(direction).lower() == "desc")
        result = present + missing
    return result


def apply_pagination(records: List[Dict[str, Any]], offset: Optional[int] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    result = records
    if offset:
        result = result[int(offset):]
    if limit:
        result = result[: int(limit)]
    return result


def process_find_many(records: Iterable[Dict[str, Any]], options: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Filter, sort and paginate ``records`` according to findMany options."""
    options = options or {}
    result = [r for r in records if matches_where(r, options.get("where"))]
    result = apply_sorting(result, options.get("order_by"))
    return apply_pagination(result, options.get("offset"), options.get("limit"))
