"""
Summary Agent Module

This module contains the SummaryAgent that restates step results in short
natural language via a second, narrowly instructed model call.
"""

import json
import logging
from typing import Any, List, Optional

from agents.base import Agent
from agents.plan_agent.config import SUMMARY_MAX_TOKENS, SUMMARY_MODEL, SUMMARY_TEMPERATURE
from agents.plan_agent.schemas import StepOutput
from services.llm_service import LLMService

logger = logging.getLogger(__name__)

SUMMARY_INSTRUCTIONS = """You are a professional AI assistant responsible for summarizing API execution results.

When users provide questions and API execution results, please generate summaries according to the following requirements:
1. Directly answer the user's question
2. Highlight key information and results
3. Express in concise language
4. If execution fails, explain the reason for failure

Please return the summary content directly without additional formatting."""


class SummaryAgent(Agent):
    """Summarizes executed plan results for the original question."""

    def __init__(self, llm=LLMService, model: str = SUMMARY_MODEL):
        self.llm = llm
        self.model = model

    def run(self, payload: List[StepOutput], context: dict) -> str:
        return self.summarize(context.get("question", ""), payload)

    def _build_prompt(self, question: str, results: List[Any]) -> str:
        serialized = [
            r.model_dump() if isinstance(r, StepOutput) else r for r in results
        ]
        return (
            f"User Question:\n{question}\n\n"
            f"API Execution Results:\n{json.dumps(serialized, indent=2, default=str, ensure_ascii=False)}\n\n"
            "Please summarize the above results."
        )

    def generate(self, question: str, results: List[Any], model: Optional[str] = None) -> str:
        """Call the model and return the summary text. Raises on failure."""
        response = self.llm.invoke(
            model=model or self.model,
            messages=[
                {"role": "system", "content": SUMMARY_INSTRUCTIONS},
                {"role": "user", "content": self._build_prompt(question, results)},
            ],
            temperature=SUMMARY_TEMPERATURE,
            max_tokens=SUMMARY_MAX_TOKENS,
        )
        return self.llm.text_of(response)

    def summarize(self, question: str, results: List[Any], model: Optional[str] = None) -> str:
        """Like :meth:`generate`, but failures come back as a plain-text message."""
        try:
            return self.generate(question, results, model)
        except Exception as e:
            logger.error(f"Summary generation failed: {e}")
            return f"Summary generation failed: {e}"
