#!/usr/bin/env python3
"""
Token usage tracker for language-model calls across the app lifecycle.
Thread-safe, keeps per-model totals, no-ops if usage isn't available in responses.
"""
from __future__ import annotations
import threading
from typing import Optional, Any, Dict

_ALL = "__all__"


class _TokenTracker:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._totals: Dict[str, Dict[str, int]] = {}

    def reset(self) -> None:
        with self._lock:
            self._totals = {}

    def _bucket(self, name: str) -> Dict[str, int]:
        return self._totals.setdefault(
            name, {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0, "calls": 0}
        )

    def add(self, prompt: int = 0, completion: int = 0, total: Optional[int] = None, model: Optional[str] = None) -> None:
        prompt = int(prompt or 0)
        completion = int(completion or 0)
        total = int(total) if total is not None else prompt + completion
        with self._lock:
            names = [_ALL] + ([model] if model else [])
            for name in names:
                bucket = self._bucket(name)
                bucket["prompt_tokens"] += prompt
                bucket["completion_tokens"] += completion
                bucket["total_tokens"] += total
                bucket["calls"] += 1

    def get_totals(self, model: Optional[str] = None) -> Dict[str, int]:
        with self._lock:
            bucket = self._totals.get(model or _ALL)
            if bucket is None:
                return {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0, "calls": 0}
            return dict(bucket)

    def models(self) -> list:
        with self._lock:
            return sorted(k for k in self._totals if k != _ALL)


token_tracker = _TokenTracker()


def record_openai_usage_from_response(resp: Any, model: Optional[str] = None) -> None:
    """Best-effort extraction of usage from OpenAI SDK response objects."""
    usage = getattr(resp, "usage", None)
    if not usage:
        return
    if isinstance(usage, dict):
        prompt = usage.get("prompt_tokens")
        completion = usage.get("completion_tokens")
        total = usage.get("total_tokens")
    else:
        prompt = getattr(usage, "prompt_tokens", None)
        completion = getattr(usage, "completion_tokens", None)
        total = getattr(usage, "total_tokens", None)
    token_tracker.add(prompt or 0, completion or 0, total, model=model or getattr(resp, "model", None))
