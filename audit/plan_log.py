import json
import os
from datetime import datetime, timezone
from typing import Any, List, Optional


class PlanLogCollector:
    """Appends one JSONL record per processed request for later inspection."""

    LOG_FILE = os.path.join("data", "audit", "plan_log.jsonl")

    @classmethod
    def log_plan(
        cls,
        input_text: str,
        execution_plan: Any,
        results: List[Any],
        summary_text: Optional[str] = None,
        proxy: bool = False,
    ) -> None:
        """Append a structured record of a processed request to the log file."""
        directory = os.path.dirname(cls.LOG_FILE)
        if directory:
            os.makedirs(directory, exist_ok=True)
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "input": input_text,
            "proxy": proxy,
            "execution_plan": _dump(execution_plan),
            "results": [_dump(r) for r in results],
            "summary_text": summary_text,
        }
        with open(cls.LOG_FILE, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")


def _dump(value: Any) -> Any:
    return value.model_dump() if hasattr(value, "model_dump") else value
