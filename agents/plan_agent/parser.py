"""
Plan Parser Module

Extracts an execution plan from raw model text. Never raises: anything that
cannot be understood degrades to an empty plan with a diagnostic message.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List

from .decoder import find_call_expression
from .placeholders import resolve_placeholders
from .schemas import ExecutionPlan, PlanOutput, Step

logger = logging.getLogger(__name__)

PARSE_ERROR_MESSAGE = "Error occurred while parsing AI response."


def _balanced_end(text: str, start: int) -> int:
    """Index of the '}' closing the '{' at ``start``, skipping quoted strings; -1 if unbalanced."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return -1


def extract_json(text: str) -> str:
    """
    Strip code fences and return the first balanced ``{...}`` span that is
    valid JSON. When no span parses, the first balanced span is returned.
    """
    text = re.sub(r"^```(?:json)?\s*|\s*```$", "", text.strip(), flags=re.I)
    first = ""
    start = text.find("{")
    while start != -1:
        end = _balanced_end(text, start)
        if end != -1:
            candidate = text[start:end + 1]
            try:
                json.loads(candidate)
                return candidate
            except ValueError:
                first = first or candidate
        start = text.find("{", start + 1)
    return first


def _coerce_order(value: Any, position: int) -> Any:
    if isinstance(value, bool) or value is None:
        return position
    if isinstance(value, (int, float)):
        return value
    try:
        number = float(str(value).strip())
    except ValueError:
        return position
    return int(number) if number.is_integer() else number


def _normalize_steps(raw_steps: Any) -> List[Dict[str, Any]]:
    if not isinstance(raw_steps, list):
        raise ValueError("execution_plan.steps must be a list")
    steps = []
    for position, raw in enumerate(raw_steps, start=1):
        if not isinstance(raw, dict):
            raise ValueError(f"Step {position} is not an object")
        step = dict(raw)
        # Missing or unreadable order falls back to array position
        step["order"] = _coerce_order(step.get("order"), position)
        steps.append(step)
    return steps


def _total_steps(value: Any, actual: int) -> int:
    # Advisory only; anything that is not a count is replaced by the real one
    if isinstance(value, bool) or not isinstance(value, int):
        return actual
    return value


def _describe(text: str, code: str) -> str:
    prose = " ".join(text.replace(code, " ").split())
    return prose[:200] if prose else code


def _empty_plan(message: str = PARSE_ERROR_MESSAGE) -> PlanOutput:
    return PlanOutput(
        execution_plan=ExecutionPlan(steps=[], total_steps=0),
        results=[],
        message=message,
        summary=False,
    )


def parse_plan(agent_response: str) -> PlanOutput:
    """
    Parse the model's response into a resolved plan.

    1. A JSON object carrying ``execution_plan`` is validated and resolved.
    2. Otherwise a single ``repo(...).method(...)`` expression becomes a
       one-step plan.
    3. Otherwise an empty plan with a diagnostic message is returned.
    """
    text = agent_response or ""
    try:
        candidate = extract_json(text)
        if candidate:
            try:
                parsed = json.loads(candidate)
            except ValueError as e:
                logger.warning(f"Model response contained malformed JSON: {e}")
                parsed = None

            if isinstance(parsed, dict) and parsed.get("execution_plan") is not None:
                raw_plan = parsed["execution_plan"]
                if not isinstance(raw_plan, dict):
                    raise ValueError("execution_plan must be an object")
                steps = _normalize_steps(raw_plan.get("steps", []))
                plan = ExecutionPlan(
                    steps=[Step(**s) for s in steps],
                    total_steps=_total_steps(raw_plan.get("total_steps"), len(steps)),
                )
                if plan.total_steps != len(plan.steps):
                    logger.info(
                        f"Plan declares {plan.total_steps} steps but contains {len(plan.steps)}"
                    )
                summary = parsed.get("summary")
                return PlanOutput(
                    execution_plan=resolve_placeholders(plan),
                    results=[],
                    summary=bool(summary) if summary is not None else None,
                )

        code = find_call_expression(text)
        if code:
            logger.info("No JSON plan found, treating embedded call as a one-step plan")
            plan = ExecutionPlan(
                steps=[Step(description=_describe(text, code), urpc_code=code, order=1)],
                total_steps=1,
            )
            return PlanOutput(execution_plan=resolve_placeholders(plan), results=[])

        logger.warning("Model response contained neither a plan nor a call expression")
        return _empty_plan()
    except Exception as e:
        logger.error(f"Error parsing AI response: {e}")
        return _empty_plan()
