"""Test configuration ensuring repository root is on ``sys.path``."""
from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from repositories.memory import MemoryAdapter  # noqa: E402
from repositories.registry import RepositoryRegistry  # noqa: E402


class FakeLLM:
    """Scripted stand-in for ``LLMService``.

    Each ``invoke``/``stream`` call consumes the next scripted item: a string
    (the model text), a list of strings (stream chunks) or an exception.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, model, messages, opts):
        self.calls.append({"model": model, "messages": messages, **opts})
        if not self.responses:
            raise RuntimeError("no scripted response left")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def invoke(self, model, messages, **opts):
        item = self._next(model, messages, opts)
        text = "".join(item) if isinstance(item, list) else item
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])

    def stream(self, model, messages, **opts):
        item = self._next(model, messages, opts)
        chunks = item if isinstance(item, list) else [item[i:i + 16] for i in range(0, len(item), 16)]
        for chunk in chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    @staticmethod
    def text_of(response):
        return (response.choices[0].message.content or "").strip()


class RecordingAdapter:
    """Wraps a memory adapter, recording every call; can be told to fail."""

    OPERATIONS = {"find_many", "find_one", "create", "create_many", "update",
                  "update_many", "upsert", "upsert_many", "delete"}
    source = "memory"

    def __init__(self, data=None, fail_on=()):
        self.inner = MemoryAdapter(data)
        self.calls = []
        self.fail_on = set(fail_on)

    @property
    def data(self):
        return self.inner.data

    def __getattr__(self, name):
        attr = getattr(self.inner, name)
        if name not in self.OPERATIONS:
            return attr

        def recorded(options):
            self.calls.append((name, options))
            if name in self.fail_on:
                raise RuntimeError(f"{name} exploded")
            return attr(options)

        return recorded


USER_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "description": "Unique id"},
        "name": {"type": "string"},
        "email": {"type": "string"},
        "age": {"type": "integer"},
    },
    "required": ["id", "name"],
}

POST_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "title": {"type": "string"},
        "userId": {"type": "string"},
    },
    "required": ["id", "title"],
}


@pytest.fixture
def make_llm():
    return FakeLLM


@pytest.fixture
def user_adapter():
    return RecordingAdapter(
        [
            {"id": "u1", "name": "Alice", "email": "alice@example.com", "age": 31},
            {"id": "u2", "name": "Bob", "email": "bob@example.com", "age": 24},
        ]
    )


@pytest.fixture
def post_adapter():
    return RecordingAdapter([{"id": "p1", "title": "Hello", "userId": "u1"}])


@pytest.fixture
def registry(user_adapter, post_adapter):
    reg = RepositoryRegistry()
    reg.register_entity("UserEntity", USER_SCHEMA, default_source="memory")
    reg.register_entity("PostEntity", POST_SCHEMA)
    reg.register_adapter("UserEntity", user_adapter)
    reg.register_adapter("PostEntity", post_adapter)
    return reg


@pytest.fixture
def make_adapter():
    return RecordingAdapter
