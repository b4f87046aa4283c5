"""
Tests for the override rule engine.
"""
import json

import pytest

from apispectra.core.exceptions import OverrideRuleError
from apispectra.models import ExpectedResponse, TestCase, TestRequest
from apispectra.services.override_rules import (
    OverrideRuleEngine,
    apply_overrides,
    build_rule_table,
    exclude,
    expect_status,
    load_rule_table,
    match,
    substitute_path,
    substitute_payload,
    unique_field,
)


def make_case(test_id="t1", endpoint="/todos", method="POST", status=200, body=None):
    return TestCase(
        id=test_id,
        endpoint=endpoint,
        method=method,
        request=TestRequest(body=body if body is not None else {"title": "Buy milk"}),
        expected_response=ExpectedResponse(status=status),
        scenario="Create todo successfully",
    )


def test_match_predicate():
    predicate = match("/todos/*", ["GET", "delete"])
    assert predicate("/todos/{todoId}", "DELETE")
    assert not predicate("/todos", "GET")
    assert not predicate("/todos/{todoId}", "POST")
    assert match()("/anything", "PATCH")


def test_expect_status_from_status():
    """from_status limits the rewrite to matching expectations."""
    rule = expect_status("/todos", "POST", 201, from_status=200)

    assert apply_overrides(make_case(status=200), [rule]).expected_response.status == 201
    assert apply_overrides(make_case(status=400), [rule]).expected_response.status == 400


def test_input_is_not_mutated():
    """The engine works on a copy."""
    original = make_case()
    adjusted = apply_overrides(original, [
        expect_status("/todos", "POST", 201),
        substitute_payload("/todos", "POST", {"title": "Other"}),
    ])

    assert original.expected_response.status == 200
    assert original.request.body == {"title": "Buy milk"}
    assert adjusted.request.body == {"title": "Other"}


def test_rules_apply_in_order():
    """Later rules see earlier mutations."""
    rules = [
        substitute_path("/todos/{todoId}", "GET", "/todos/1"),
        expect_status("/todos/1", "GET", 404),
        expect_status("/todos/{todoId}", "GET", 500),
    ]
    adjusted = apply_overrides(make_case(endpoint="/todos/{todoId}", method="GET"), rules)

    assert adjusted.endpoint == "/todos/1"
    assert adjusted.expected_response.status == 404


def test_substitute_payload_merge():
    rule = substitute_payload("/todos", "POST", {"completed": True}, merge=True)
    adjusted = apply_overrides(make_case(), [rule])
    assert adjusted.request.body == {"title": "Buy milk", "completed": True}


def test_unique_field():
    """A timestamp from the clock is injected before the domain."""
    clock = lambda: 1700000000000  # noqa: E731
    case = make_case(endpoint="/users", body={"email": "test@example.com", "name": "Ann"})

    adjusted = apply_overrides(case, [
        unique_field("/users", "POST", "email", clock=clock),
        unique_field("/users", "POST", "name", clock=clock),
        unique_field("/users", "POST", "backupEmail", clock=clock),
    ])

    assert adjusted.request.body == {
        "email": "test1700000000000@example.com",
        "name": "Ann1700000000000",
        "backupEmail": "test1700000000000@example.com",
    }


def test_apply_all_excludes():
    """Excluded test cases leave the active set and are reported by id."""
    cases = {
        "a": make_case("a", endpoint="/todos"),
        "b": make_case("b", endpoint="/uploads"),
        "c": make_case("c", endpoint="/todos", method="GET"),
    }
    engine = OverrideRuleEngine([exclude("/uploads", "*", reason="needs a file")])

    active, excluded = engine.apply_all(cases)

    assert list(active) == ["a", "c"]
    assert excluded == ["b"]
    assert cases["b"].excluded is False


def test_load_rule_table_yaml(tmp_path):
    rule_file = tmp_path / "overrides.yaml"
    rule_file.write_text(
        "rules:\n"
        "  - name: created\n"
        "    path: /todos\n"
        "    method: POST\n"
        "    action: expect_status\n"
        "    status: 201\n"
        "    from_status: 200\n"
        "  - path: /uploads\n"
        "    action: exclude\n"
        "    reason: multipart\n"
    )

    rules = load_rule_table(rule_file)

    assert [r.name for r in rules] == ["created", "#1"]
    assert apply_overrides(make_case(), rules).expected_response.status == 201


def test_load_rule_table_json_list(tmp_path):
    rule_file = tmp_path / "overrides.json"
    rule_file.write_text(json.dumps([
        {"action": "substitute_payload", "path": "/todos", "method": "POST", "payload": {"title": "x"}},
    ]))

    rules = load_rule_table(rule_file)
    assert apply_overrides(make_case(), rules).request.body == {"title": "x"}


def test_build_rule_table_from_entries():
    """In-memory entries use the same format as rule files."""
    rules = build_rule_table({"rules": [
        {"action": "expect_status", "path": "/todos", "method": "POST", "status": "201", "from_status": 200},
    ]})
    assert apply_overrides(make_case(), rules).expected_response.status == 201
    assert build_rule_table(None) == []


@pytest.mark.parametrize("content", [
    "- action: explode\n",
    "- action: expect_status\n",
    "- action: expect_status\n  status: created\n",
    "- just a string\n",
    "rules: 3\n",
])
def test_invalid_rule_tables(tmp_path, content):
    rule_file = tmp_path / "overrides.yaml"
    rule_file.write_text(content)
    with pytest.raises(OverrideRuleError):
        load_rule_table(rule_file)


def test_missing_rule_table(tmp_path):
    with pytest.raises(OverrideRuleError):
        load_rule_table(tmp_path / "missing.yaml")
