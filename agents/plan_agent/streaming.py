"""
Streaming Reporter Module

Turns a model token stream into newline-delimited JSON event records:

    ai_response* → execution_plan → (executing [executing-on-failure])*
    → [summary | summary_error] → final_result

or a single ``error`` event when the invocation fails at the top level.
Every step is dispatched and awaited before the next event is produced.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Iterable, Iterator, List, Optional

from .executor import PlanExecutor
from .parser import parse_plan
from .schemas import PlanOutput, StepOutput

logger = logging.getLogger(__name__)

EVENT_TYPES = (
    "ai_response",
    "execution_plan",
    "executing",
    "summary",
    "summary_error",
    "error",
    "final_result",
)


def make_event(event_type: str, content: Any, **extra: Any) -> str:
    """Serialize one event record followed by a newline."""
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown event type: {event_type}")
    if hasattr(content, "to_payload"):
        content = content.to_payload()
    elif hasattr(content, "model_dump"):
        content = content.model_dump()
    record = {"type": event_type, "content": content, **extra, "timestamp": int(time.time() * 1000)}
    return json.dumps(record, default=str, ensure_ascii=False) + "\n"


class StreamingReporter:
    """Single-threaded pipeline from model text stream to event records."""

    def __init__(self, executor: PlanExecutor, summarizer=None):
        self.executor = executor
        self.summarizer = summarizer

    def stream(
        self,
        text_stream: Iterable[str],
        question: str,
        proxy: bool = False,
        summary: bool = False,
        on_final: Optional[Callable[[PlanOutput], None]] = None,
    ) -> Iterator[str]:
        try:
            buffer = []
            for chunk in text_stream:
                buffer.append(chunk)
                yield make_event("ai_response", chunk)

            parsed = parse_plan("".join(buffer))
            plan = parsed.execution_plan
            yield make_event("execution_plan", plan, summary=summary)

            if proxy:
                final = PlanOutput(execution_plan=plan, results=[], message=parsed.message)
            else:
                final = yield from self._execute(plan, question, summary)
                if parsed.message and final.message is None:
                    final.message = parsed.message

            if on_final is not None:
                on_final(final)
            yield make_event("final_result", final)
        except Exception as e:
            logger.error(f"Stream processing error: {e}")
            yield make_event("error", f"Stream processing error: {e}")

    def _execute(self, plan, question: str, summary: bool):
        results: List[StepOutput] = []
        for step in plan.sorted_steps():
            yield make_event("executing", f"In progress: {step.description}")
            output = self.executor.run_step(step)
            results.append(output)
            if not output.success:
                yield make_event("executing", f"Failed: {step.description} - {output.message}")

        final = PlanOutput(execution_plan=plan, results=results)
        if summary and results and self.summarizer is not None:
            try:
                summary_text = self.summarizer.generate(question, results)
            except Exception as e:
                logger.error(f"Summary generation failed: {e}")
                yield make_event("summary_error", f"Summary generation failed: {e}")
            else:
                final.results = []
                final.summary = True
                final.summaryText = summary_text
                yield make_event("summary", summary_text)
        return final
