"""Tests for parsing the JSON workflow format."""

import pytest

from automation_engine.core.config import settings
from automation_engine.core.exceptions import WorkflowInvalidError
from automation_engine.engine import Edge, ErrorPolicy
from automation_engine.schemas.workflow import definition_to_dict, parse_workflow_definition


def _doc(**overrides):
    doc = {
        "id": "orders",
        "name": "Order sync",
        "nodes": [
            {"id": "start", "type": "manual_trigger"},
            {
                "id": "fetch",
                "type": "http.request",
                "params": {"url": "https://example.com/{{ $input.id }}"},
                "onError": {"policy": "retry", "maxAttempts": 4, "backoffMs": 250, "backoff": "fixed"},
            },
            {"id": "check", "type": "condition", "params": {"value": "{{ fetch.statusCode }}"}},
        ],
        "edges": [
            {"from": "start", "to": "fetch"},
            {"from": "fetch", "to": "check", "branch": None},
        ],
    }
    doc.update(overrides)
    return doc


class TestParseWorkflowDefinition:
    """Tests for parse_workflow_definition."""

    def test_list_form(self):
        definition = parse_workflow_definition(_doc())

        assert definition.id == "orders"
        assert definition.name == "Order sync"
        assert list(definition.nodes) == ["start", "fetch", "check"]
        assert definition.edges == (Edge("start", "fetch"), Edge("fetch", "check"))
        assert definition.nodes["fetch"].on_error == ErrorPolicy.retry(4, 250, "fixed")
        assert definition.nodes["start"].on_error == ErrorPolicy.stop()

    def test_mapping_form_takes_ids_from_keys(self):
        definition = parse_workflow_definition(
            {
                "id": "wf",
                "nodes": {
                    "start": {"type": "manual_trigger"},
                    "done": {"id": "done", "type": "output"},
                },
                "edges": [{"from": "start", "to": "done"}],
            }
        )
        assert definition.nodes["start"].id == "start"
        assert definition.entry_nodes == ["start"]

    def test_string_retry_policy_uses_defaults(self):
        doc = _doc()
        doc["nodes"][1]["onError"] = "retry"
        definition = parse_workflow_definition(doc)

        policy = definition.nodes["fetch"].on_error
        assert policy.policy == "retry"
        assert policy.max_attempts == settings.default_retry_attempts
        assert policy.backoff_ms == settings.default_retry_delay_ms
        assert policy.backoff == settings.default_backoff

    def test_continue_policy(self):
        doc = _doc()
        doc["nodes"][1]["onError"] = "continue"
        definition = parse_workflow_definition(doc)

        assert definition.nodes["fetch"].on_error.policy == "continue"
        assert definition.nodes["fetch"].on_error.allowed_attempts == 1

    def test_unknown_policy_rejected(self):
        doc = _doc()
        doc["nodes"][1]["onError"] = "ignore"
        with pytest.raises(WorkflowInvalidError) as exc_info:
            parse_workflow_definition(doc)
        assert exc_info.value.workflow_id == "orders"

    def test_duplicate_node_ids_rejected(self):
        doc = _doc()
        doc["nodes"].append({"id": "fetch", "type": "output"})
        with pytest.raises(WorkflowInvalidError) as exc_info:
            parse_workflow_definition(doc)
        assert "duplicate" in exc_info.value.message

    def test_mismatched_key_rejected(self):
        with pytest.raises(WorkflowInvalidError):
            parse_workflow_definition({"id": "wf", "nodes": {"a": {"id": "b", "type": "output"}}})

    def test_missing_fields_rejected(self):
        with pytest.raises(WorkflowInvalidError):
            parse_workflow_definition({"nodes": []})

    def test_params_are_read_only(self):
        definition = parse_workflow_definition(_doc())
        with pytest.raises(TypeError):
            definition.nodes["fetch"].params["url"] = "changed"

    def test_definition_to_dict(self):
        data = definition_to_dict(parse_workflow_definition(_doc()))

        assert data["id"] == "orders"
        assert data["edges"][0] == {"from": "start", "to": "fetch"}
        assert data["nodes"][1]["onError"] == {
            "policy": "retry",
            "maxAttempts": 4,
            "backoffMs": 250,
            "backoff": "fixed",
        }
        assert parse_workflow_definition(data) == parse_workflow_definition(_doc())
