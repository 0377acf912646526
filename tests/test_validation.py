"""Tests for load-time workflow validation."""

import pytest

from automation_engine.core.exceptions import WorkflowInvalidError
from automation_engine.engine import ErrorPolicy, NodeSpec, validate_workflow


class TestValidateWorkflow:
    """Tests for validate_workflow."""

    def test_returns_topological_order(self, registry, make_workflow):
        wf = make_workflow(
            [
                NodeSpec("a", "echo"),
                NodeSpec("d", "echo"),
                NodeSpec("c", "echo"),
                NodeSpec("b", "echo"),
            ],
            [("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")],
        )
        assert validate_workflow(wf, registry) == ["a", "c", "b", "d"]

    def test_cycle_is_rejected(self, registry, make_workflow):
        wf = make_workflow(
            [NodeSpec("a", "echo"), NodeSpec("b", "echo"), NodeSpec("c", "echo")],
            [("a", "b"), ("b", "c"), ("c", "b")],
        )
        with pytest.raises(WorkflowInvalidError) as exc_info:
            validate_workflow(wf, registry)
        assert any("cycle" in p for p in exc_info.value.problems)

    def test_unknown_step_type(self, registry, make_workflow):
        wf = make_workflow([NodeSpec("a", "teleport")])
        with pytest.raises(WorkflowInvalidError) as exc_info:
            validate_workflow(wf, registry)
        assert 'unknown step type "teleport"' in exc_info.value.message

    def test_edge_to_unknown_node(self, registry, make_workflow):
        wf = make_workflow([NodeSpec("a", "echo")], [("a", "ghost")])
        with pytest.raises(WorkflowInvalidError) as exc_info:
            validate_workflow(wf, registry)
        assert any("ghost" in p for p in exc_info.value.problems)

    def test_multiple_entry_nodes(self, registry, make_workflow):
        wf = make_workflow([NodeSpec("a", "echo"), NodeSpec("b", "echo")])
        with pytest.raises(WorkflowInvalidError) as exc_info:
            validate_workflow(wf, registry)
        assert any("exactly one entry node" in p for p in exc_info.value.problems)

    def test_empty_workflow(self, registry, make_workflow):
        with pytest.raises(WorkflowInvalidError):
            validate_workflow(make_workflow([]), registry)

    def test_self_loop_and_duplicate_edge(self, registry, make_workflow):
        wf = make_workflow(
            [NodeSpec("a", "echo"), NodeSpec("b", "echo")],
            [("a", "b"), ("a", "b"), ("b", "b")],
        )
        with pytest.raises(WorkflowInvalidError) as exc_info:
            validate_workflow(wf, registry)
        problems = " | ".join(exc_info.value.problems)
        assert "self-loop" in problems
        assert "more than once" in problems

    def test_branch_tag_requires_branching_step(self, registry, make_workflow):
        wf = make_workflow(
            [NodeSpec("a", "echo"), NodeSpec("b", "echo")],
            [("a", "b", "true")],
        )
        with pytest.raises(WorkflowInvalidError) as exc_info:
            validate_workflow(wf, registry)
        assert "does not select branches" in exc_info.value.message

    def test_branch_tags_allowed_on_condition(self, registry, make_workflow):
        wf = make_workflow(
            [NodeSpec("check", "condition", {"value": True}), NodeSpec("yes", "echo"), NodeSpec("no", "echo")],
            [("check", "yes", "true"), ("check", "no", "false")],
        )
        assert validate_workflow(wf, registry) == ["check", "yes", "no"]

    def test_malformed_policy(self, registry, make_workflow):
        wf = make_workflow([NodeSpec("a", "echo", {}, ErrorPolicy(policy="retry", max_attempts=0))])
        with pytest.raises(WorkflowInvalidError) as exc_info:
            validate_workflow(wf, registry)
        assert any("maxAttempts" in p for p in exc_info.value.problems)

    def test_reports_every_problem(self, registry, make_workflow):
        """Test that all problems are collected rather than the first one only."""
        wf = make_workflow(
            [NodeSpec("a", "teleport"), NodeSpec("b", "echo")],
            [("a", "ghost")],
        )
        with pytest.raises(WorkflowInvalidError) as exc_info:
            validate_workflow(wf, registry)
        assert len(exc_info.value.problems) >= 3
        assert exc_info.value.workflow_id == "test"
