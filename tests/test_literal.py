import pytest

from agents.plan_agent.literal import OptionsDecodeError, parse_literal, tokenize


def test_bare_and_quoted_keys():
    assert parse_literal("{where: {name: 'jack'}, \"limit\": 10}") == {
        "where": {"name": "jack"},
        "limit": 10,
    }


def test_nested_arrays_and_keywords():
    value = parse_literal("{data: [{a: true}, {b: null}, {c: undefined}], n: -1.5}")
    assert value == {"data": [{"a": True}, {"b": None}, {"c": None}], "n": -1.5}


def test_trailing_commas_are_accepted():
    assert parse_literal("{a: [1, 2,], b: 'x',}") == {"a": [1, 2], "b": "x"}


def test_string_escapes():
    assert parse_literal(r"{s: 'it\'s\nA'}") == {"s": "it's\nA"}


def test_identifiers_are_never_evaluated():
    with pytest.raises(OptionsDecodeError):
        parse_literal("{a: someVariable}")
    with pytest.raises(OptionsDecodeError):
        parse_literal("{a: 1} + 2")


def test_unterminated_string_raises_unless_lenient():
    with pytest.raises(OptionsDecodeError):
        tokenize("{a: 'oops}")
    kinds = [t.kind for t in tokenize("don't repo(", lenient=True)]
    assert "other" in kinds
    assert kinds[-1] == "punct"
