import json

from agents.plan_agent.agent import PlanAgent
from audit.plan_log import PlanLogCollector

FIND_ALL = json.dumps({
    "execution_plan": {
        "steps": [{"description": "Find all users", "urpc_code": 'repo({entity: "user", source: "[default]"}).findMany()', "order": 1}],
        "total_steps": 1,
    }
})


def test_process_request_executes_plan(registry, user_adapter, make_llm):
    llm = make_llm(FIND_ALL)
    output = PlanAgent(registry, llm=llm).process_request("Find all users")
    assert len(output.results) == 1
    assert output.results[0].success is True
    assert user_adapter.calls == [("find_many", {})]
    system, user = llm.calls[0]["messages"]
    assert system["role"] == "system" and "### UserEntity:" in system["content"]
    assert user == {"role": "user", "content": "Find all users"}
    assert llm.calls[0]["model"] == "google/gemini-2.0-flash-001"


def test_model_override(registry, make_llm):
    llm = make_llm(FIND_ALL)
    PlanAgent(registry, llm=llm).process_request("Find all users", model="openai/gpt-4o")
    assert llm.calls[0]["model"] == "openai/gpt-4o"


def test_summary_replaces_results(registry, make_llm):
    llm = make_llm(FIND_ALL, "Alice and Bob.")
    output = PlanAgent(registry, llm=llm).process_request("Find all users", summary=True)
    assert output.results == []
    assert output.summary is True
    assert output.summaryText == "Alice and Bob."


def test_failed_summary_is_reported_as_text(registry, make_llm):
    llm = make_llm(FIND_ALL, RuntimeError("boom"))
    output = PlanAgent(registry, llm=llm).process_request("Find all users", summary=True)
    assert output.summaryText == "Summary generation failed: boom"
    assert output.results == []


def test_proxy_returns_plan_without_executing(registry, user_adapter, make_llm):
    output = PlanAgent(registry, llm=make_llm(FIND_ALL)).process_request("Find all users", proxy=True)
    assert len(output.execution_plan.steps) == 1
    assert output.results == []
    assert user_adapter.calls == []


def test_proxy_merges_caller_entities(registry, make_llm):
    llm = make_llm(FIND_ALL)
    PlanAgent(registry, llm=llm).process_request(
        "Find all users",
        proxy=True,
        entities=["post"],
        entity_schemas={"TodoEntity": {"properties": {"title": {"type": "string"}}}},
        entity_sources={"TodoEntity": ["indexeddb"]},
    )
    system = llm.calls[0]["messages"][0]["content"]
    assert "### TodoEntity:" in system
    assert "### UserEntity:" in system
    assert '- TodoEntity: "indexeddb"' in system


def test_entity_filter(registry):
    schemas, sources, configs = PlanAgent(registry, llm=object()).get_entity_info(["post"])
    assert list(schemas) == ["PostEntity"]
    assert list(sources) == ["PostEntity"]
    assert configs == {}


def test_instructions_are_cached(registry, make_llm):
    agent = PlanAgent(registry, llm=make_llm(FIND_ALL, FIND_ALL))
    agent.process_request("a")
    key = agent.instruction_cache.key
    agent.process_request("b")
    assert agent.instruction_cache.key == key
    agent.invalidate_instructions()
    assert agent.instruction_cache.key is None


def test_llm_failure_gives_empty_plan(registry, make_llm):
    output = PlanAgent(registry, llm=make_llm(RuntimeError("unreachable"))).process_request("x")
    assert output.execution_plan.steps == []
    assert output.message == "Error occurred while processing request: unreachable"


def test_unparseable_response_keeps_parse_message(registry, make_llm):
    output = PlanAgent(registry, llm=make_llm("I can't do that")).process_request("x")
    assert output.results == []
    assert output.message == "Error occurred while parsing AI response."


def test_stream_response(registry, make_llm):
    agent = PlanAgent(registry, llm=make_llm([FIND_ALL[:30], FIND_ALL[30:]]))
    events = [json.loads(line) for line in agent.stream_response("Find all users")]
    assert [e["type"] for e in events] == [
        "ai_response", "ai_response", "execution_plan", "executing", "final_result",
    ]


def test_stream_response_upstream_error(registry, make_llm):
    agent = PlanAgent(registry, llm=make_llm(RuntimeError("401")))
    events = [json.loads(line) for line in agent.stream_response("x")]
    assert len(events) == 1
    assert events[0]["type"] == "error"
    assert "401" in events[0]["content"]


def test_plans_are_audited(registry, make_llm, tmp_path, monkeypatch):
    path = tmp_path / "plan_log.jsonl"
    monkeypatch.setattr(PlanLogCollector, "LOG_FILE", str(path))
    PlanAgent(registry, llm=make_llm(FIND_ALL), log_plans=True).process_request("Find all users")
    entry = json.loads(path.read_text().strip())
    assert entry["input"] == "Find all users"
    assert len(entry["results"]) == 1


def test_run_forwards_context(registry, user_adapter, make_llm):
    output = PlanAgent(registry, llm=make_llm(FIND_ALL)).run("Find all users", {"proxy": True})
    assert len(output.execution_plan.steps) == 1
    assert user_adapter.calls == []
