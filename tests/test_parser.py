import json

from agents.plan_agent.parser import PARSE_ERROR_MESSAGE, extract_json, parse_plan


def _plan(*steps, **extra):
    return json.dumps({"execution_plan": {"steps": list(steps), "total_steps": len(steps)}, **extra})


def test_extract_json_strips_fences():
    text = "```json\n{\"a\": 1}\n```"
    assert extract_json(text) == '{"a": 1}'
    assert extract_json("no braces") == ""


def test_find_all_users_plan():
    code = 'repo({entity: "user", source: "[default]"}).findMany()'
    output = parse_plan(_plan({"description": "Find all users", "urpc_code": code, "order": 1}))
    plan = output.execution_plan
    assert plan.total_steps == 1
    assert plan.steps[0].urpc_code == code
    assert plan.steps[0].description == "Find all users"
    assert output.results == []
    assert output.message is None


def test_plan_inside_prose_and_fences():
    body = _plan({"description": "x", "urpc_code": 'repo({entity: "user", source: "memory"}).findMany()', "order": 1})
    output = parse_plan(f"Here is the plan:\n```json\n{body}\n```\nThanks")
    assert len(output.execution_plan.steps) == 1


def test_missing_order_defaults_to_position():
    output = parse_plan(_plan(
        {"description": "a", "urpc_code": 'repo({entity: "user"}).findMany()'},
        {"description": "b", "urpc_code": 'repo({entity: "post"}).findMany()'},
    ))
    assert [s.order for s in output.execution_plan.steps] == [1, 2]


def test_summary_flag_passes_through():
    output = parse_plan(_plan({"description": "a", "urpc_code": 'repo({entity: "user"}).findMany()', "order": 1}, summary=True))
    assert output.summary is True


def test_bare_call_becomes_single_step():
    output = parse_plan('Use repo({entity: "user", source: "memory"}).findMany({limit: 3}) to list them')
    steps = output.execution_plan.steps
    assert len(steps) == 1
    assert steps[0].order == 1
    assert steps[0].urpc_code == 'repo({entity: "user", source: "memory"}).findMany({limit: 3})'
    assert "list them" in steps[0].description


def test_prose_yields_empty_plan():
    output = parse_plan("I'm sorry, I cannot help with that.")
    assert output.execution_plan.steps == []
    assert output.execution_plan.total_steps == 0
    assert output.message == PARSE_ERROR_MESSAGE


def test_malformed_plan_never_raises():
    output = parse_plan('{"execution_plan": {"steps": "nope"}}')
    assert output.execution_plan.steps == []
    assert output.message == PARSE_ERROR_MESSAGE
    assert parse_plan("").execution_plan.steps == []


def test_total_steps_mismatch_is_tolerated():
    step = {"description": "a", "urpc_code": 'repo({entity: "user"}).findMany()', "order": 1}
    output = parse_plan(json.dumps({"execution_plan": {"steps": [step, dict(step, order=2)], "total_steps": 5}}))
    assert len(output.execution_plan.steps) == 2
    assert output.execution_plan.total_steps == 5
    assert output.message is None


def test_null_total_steps_uses_step_count():
    step = {"description": "a", "urpc_code": 'repo({entity: "user"}).findMany()', "order": 1}
    output = parse_plan(json.dumps({"execution_plan": {"steps": [step], "total_steps": None}}))
    assert len(output.execution_plan.steps) == 1
    assert output.execution_plan.total_steps == 1


def test_plan_followed_by_prose_with_braces():
    body = _plan({"description": "x", "urpc_code": 'repo({entity: "user", source: "memory"}).findMany()', "order": 1})
    output = parse_plan(f"{body}\nTip: swap {{default}} for a concrete source.")
    assert len(output.execution_plan.steps) == 1
    assert output.message is None


def test_extract_json_skips_braces_inside_strings():
    text = 'prefix {"code": "repo({entity: \\"u\\"})", "n": 1} suffix {x}'
    assert json.loads(extract_json(text)) == {"code": 'repo({entity: "u"})', "n": 1}


def test_fractional_and_textual_orders():
    output = parse_plan(_plan(
        {"description": "b", "urpc_code": 'repo({entity: "post"}).findMany()', "order": 1.5},
        {"description": "a", "urpc_code": 'repo({entity: "user"}).findMany()', "order": "1"},
        {"description": "c", "urpc_code": 'repo({entity: "user"}).findOne()', "order": "later"},
    ))
    steps = output.execution_plan.steps
    assert [s.order for s in steps] == [1.5, 1, 3]
    assert [s.description for s in output.execution_plan.sorted_steps()] == ["a", "b", "c"]
