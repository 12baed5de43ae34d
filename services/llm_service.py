import logging
import os
from typing import Any, Dict, Iterator, List

import openai
from dotenv import load_dotenv
from openai import OpenAI
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from agents.plan_agent.config import DEFAULT_BASE_URL
from utils.token_tracker import record_openai_usage_from_response

load_dotenv()

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (openai.APIConnectionError, openai.RateLimitError)


class LLMService:
    """Central service for invoking chat models and logging usage."""

    _client: OpenAI | None = None

    @classmethod
    def _get_client(cls) -> OpenAI:
        if cls._client is None:
            api_key = os.getenv("OPENROUTER_API_KEY") or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OPENROUTER_API_KEY (or OPENAI_API_KEY) not found in .env or environment")
            cls._client = OpenAI(
                api_key=api_key,
                base_url=os.getenv("LLM_BASE_URL", DEFAULT_BASE_URL),
            )
        return cls._client

    @classmethod
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        reraise=True,
    )
    def invoke(cls, model: str, messages: List[Dict[str, str]], **opts: Any):
        """Invoke a chat completion model and return the raw response."""
        client = cls._get_client()
        response = client.chat.completions.create(
            model=model, messages=messages, **opts
        )
        usage = getattr(response, "usage", None)
        if usage:
            logger.info(
                "LLM usage - prompt: %s, completion: %s, total: %s",
                usage.prompt_tokens,
                usage.completion_tokens,
                usage.total_tokens,
            )
        record_openai_usage_from_response(response, model=model)
        return response

    @classmethod
    def stream(cls, model: str, messages: List[Dict[str, str]], **opts: Any) -> Iterator[str]:
        """Stream a chat completion, yielding text deltas as they arrive."""
        client = cls._get_client()
        chunks = client.chat.completions.create(
            model=model, messages=messages, stream=True, **opts
        )
        for chunk in chunks:
            if getattr(chunk, "usage", None):
                record_openai_usage_from_response(chunk, model=model)
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta

    @staticmethod
    def text_of(response: Any) -> str:
        """Extract the assistant text from a chat completion response."""
        return (response.choices[0].message.content or "").strip()
