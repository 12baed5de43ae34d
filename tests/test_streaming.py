import json

import pytest

from agents.plan_agent.executor import PlanExecutor
from agents.plan_agent.streaming import StreamingReporter, make_event
from agents.summarizer.agent import SummaryAgent
from repositories.registry import RepositoryRegistry

PLAN = json.dumps({
    "execution_plan": {
        "steps": [
            {"description": "Find users", "urpc_code": 'repo({entity: "user", source: "memory"}).findMany()', "order": 1},
            {"description": "Create user", "urpc_code": 'repo({entity: "user", source: "memory"}).create({data: {id: "generated-id"}})', "order": 2},
        ],
        "total_steps": 2,
    }
})


def _events(lines):
    assert all(line.endswith("\n") for line in lines)
    return [json.loads(line) for line in lines]


def _chunks(text, size=20):
    return [text[i:i + size] for i in range(0, len(text), size)]


def test_make_event_shape():
    event = json.loads(make_event("summary", "done", extra=1))
    assert event["type"] == "summary"
    assert event["content"] == "done"
    assert event["extra"] == 1
    assert isinstance(event["timestamp"], int)
    with pytest.raises(ValueError):
        make_event("bogus", "x")


def test_event_sequence(registry, user_adapter):
    reporter = StreamingReporter(PlanExecutor(registry))
    events = _events(list(reporter.stream(_chunks(PLAN), "q")))
    types = [e["type"] for e in events]
    ai = types.count("ai_response")
    assert ai == len(_chunks(PLAN))
    assert types[ai:] == ["execution_plan", "executing", "executing", "final_result"]
    assert events[ai + 1]["content"] == "In progress: Find users"
    final = events[-1]["content"]
    assert len(final["results"]) == 2
    assert [c[0] for c in user_adapter.calls] == ["find_many", "create"]


def test_failed_step_emits_failure_event(make_adapter):
    reg = RepositoryRegistry()
    reg.register_adapter("UserEntity", make_adapter(fail_on={"find_many"}))
    events = _events(list(StreamingReporter(PlanExecutor(reg)).stream([PLAN], "q")))
    contents = [e["content"] for e in events if e["type"] == "executing"]
    assert contents[:2] == [
        "In progress: Find users",
        "Failed: Find users - Error occurred while executing operation.",
    ]
    assert events[-1]["type"] == "final_result"


def test_summary_event_replaces_results(registry, make_llm):
    summarizer = SummaryAgent(llm=make_llm("Two users found."))
    reporter = StreamingReporter(PlanExecutor(registry), summarizer)
    events = _events(list(reporter.stream([PLAN], "q", summary=True)))
    assert (events[-2]["type"], events[-2]["content"]) == ("summary", "Two users found.")
    final = events[-1]["content"]
    assert final["results"] == []
    assert final["summary"] is True
    assert final["summaryText"] == "Two users found."


def test_summary_error_keeps_results(registry, make_llm):
    summarizer = SummaryAgent(llm=make_llm(RuntimeError("no model")))
    events = _events(list(StreamingReporter(PlanExecutor(registry), summarizer).stream([PLAN], "q", summary=True)))
    assert events[-2]["type"] == "summary_error"
    assert len(events[-1]["content"]["results"]) == 2


def test_proxy_mode_executes_nothing(registry, user_adapter):
    events = _events(list(StreamingReporter(PlanExecutor(registry)).stream([PLAN], "q", proxy=True)))
    assert [e["type"] for e in events] == ["ai_response", "execution_plan", "final_result"]
    assert events[-1]["content"]["results"] == []
    assert user_adapter.calls == []


def test_upstream_failure_becomes_error_event(registry):
    def broken():
        yield '{"execution'
        raise ConnectionError("stream dropped")

    events = _events(list(StreamingReporter(PlanExecutor(registry)).stream(broken(), "q")))
    assert events[-1]["type"] == "error"
    assert events[-1]["content"] == "Stream processing error: stream dropped"
    assert "final_result" not in [e["type"] for e in events]


def test_final_result_keeps_null_data(registry):
    plan = json.dumps({
        "execution_plan": {
            "steps": [{"description": "Find", "urpc_code": 'repo({entity: "user", source: "postgres"}).findMany()', "order": 1}],
            "total_steps": 1,
        }
    })
    events = _events(list(StreamingReporter(PlanExecutor(registry)).stream([plan], "q")))
    result = events[-1]["content"]["results"][0]
    assert result["success"] is False
    assert "data" in result and result["data"] is None
