import json

import pytest

from core.orchestrator import DEFAULT_CONFIG, ChatRequest, Orchestrator, _import_from_path, build_registry
from repositories.memory import MemoryAdapter

CONFIG = {
    "agent": {"model": "test/model"},
    "entities": {
        "UserEntity": {
            "defaultSource": "memory",
            "schema": {"properties": {"id": {"type": "string"}}, "required": ["id"]},
            "adapters": [
                {"class": "repositories.memory.MemoryAdapter", "params": {"data": [{"id": "u1"}]}},
            ],
        }
    },
}

FIND_ALL = json.dumps({
    "execution_plan": {
        "steps": [{"description": "Find all users", "urpc_code": 'repo({entity: "user", source: "[default]"}).findMany()', "order": 1}],
        "total_steps": 1,
    }
})


def test_import_from_path_accepts_both_forms():
    assert _import_from_path("repositories.memory.MemoryAdapter") is MemoryAdapter
    assert _import_from_path("repositories.memory:MemoryAdapter") is MemoryAdapter


def test_build_registry_from_config():
    registry = build_registry(CONFIG["entities"])
    assert registry.get_entity_sources() == {"UserEntity": ["memory"]}
    assert registry.get_entity_configs() == {"user": {"defaultSource": "memory"}}
    assert registry.repo("user", "memory").find_many({}) == [{"id": "u1"}]


def test_handle_runs_plan(make_llm):
    llm = make_llm(FIND_ALL)
    orchestrator = Orchestrator(CONFIG, llm=llm)
    output = orchestrator.handle({"input": "Find all users"})
    assert output.results[0].data == [{"id": "u1"}]
    assert llm.calls[0]["model"] == "test/model"


def test_handle_stream(make_llm):
    orchestrator = Orchestrator(CONFIG, llm=make_llm(FIND_ALL))
    lines = list(orchestrator.handle(ChatRequest(input="Find all users", stream=True)))
    assert json.loads(lines[-1])["type"] == "final_result"


def test_input_is_required(make_llm):
    orchestrator = Orchestrator(CONFIG, llm=make_llm())
    with pytest.raises(ValueError, match="input is required"):
        orchestrator.handle({"input": "   "})


def test_config_needs_a_repository():
    with pytest.raises(ValueError):
        Orchestrator({"agent": {}})


def test_default_workflow_file_loads(make_llm):
    orchestrator = Orchestrator(DEFAULT_CONFIG, llm=make_llm())
    assert "UserEntity" in orchestrator.repository.get_entity_schemas()


def test_handle_goes_through_agent_run(make_llm, monkeypatch):
    orchestrator = Orchestrator(CONFIG, llm=make_llm(FIND_ALL))
    seen = []
    original_run = orchestrator.agent.run

    def spy(payload, context):
        seen.append((payload, context))
        return original_run(payload, context)

    monkeypatch.setattr(orchestrator.agent, "run", spy)
    orchestrator.handle({"input": "Find all users", "summary": False})
    assert seen[0][0] == "Find all users"
    assert "input" not in seen[0][1] and "stream" not in seen[0][1]
