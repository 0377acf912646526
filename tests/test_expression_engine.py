"""Tests for template resolution and safe expression evaluation."""

import pytest

from automation_engine.core.exceptions import ResolutionError
from automation_engine.engine import ExpressionEngine


@pytest.fixture
def engine():
    return ExpressionEngine()


@pytest.fixture
def context(make_context):
    ctx = make_context({"user": {"id": 7, "tags": ["a", "b"]}, "threshold": 10, "fetch": "shadowed"})
    ctx.commit("fetch", {"statusCode": 200, "body": {"items": [{"name": "first"}, {"name": "second"}]}})
    ctx.commit("empty", None)
    ctx.commit("my-node", {"count": 3})
    return ctx


class TestResolve:
    """Tests for {{ }} template resolution."""

    def test_whole_template_returns_typed_value(self, engine, context):
        assert engine.resolve("{{ fetch.statusCode }}", context) == 200
        assert engine.resolve("{{ fetch.body.items }}", context) == [{"name": "first"}, {"name": "second"}]

    def test_surrounding_whitespace_still_typed(self, engine, context):
        assert engine.resolve("  {{fetch.statusCode}} ", context) == 200

    def test_mixed_text_is_stringified(self, engine, context):
        assert engine.resolve("status={{ fetch.statusCode }}!", context) == "status=200!"

    def test_mixed_text_renders_objects_as_json(self, engine, context):
        assert engine.resolve("user: {{ $input.user }}", context) == 'user: {"id": 7, "tags": ["a", "b"]}'

    def test_null_renders_as_empty_string(self, engine, context):
        assert engine.resolve("value=[{{ empty }}]", context) == "value=[]"
        assert engine.resolve("{{ empty }}", context) is None

    def test_numeric_segments_index_lists(self, engine, context):
        assert engine.resolve("{{ fetch.body.items.1.name }}", context) == "second"
        assert engine.resolve("{{ $input.user.tags.0 }}", context) == "a"

    def test_explicit_input_root(self, engine, context):
        assert engine.resolve("{{ $input.user.id }}", context) == 7

    def test_bare_name_falls_back_to_input(self, engine, context):
        assert engine.resolve("{{ threshold }}", context) == 10

    def test_node_output_shadows_input_key(self, engine, context):
        """Test that a node id takes precedence over an input key of the same name."""
        assert engine.resolve("{{ fetch.statusCode }}", context) == 200
        assert engine.resolve("{{ $input.fetch }}", context) == "shadowed"

    def test_nested_structures_resolved_recursively(self, engine, context):
        template = {"ids": ["{{ $input.user.id }}", 1], "meta": {"status": "{{ fetch.statusCode }}"}, "flag": True}
        assert engine.resolve(template, context) == {"ids": [7, 1], "meta": {"status": 200}, "flag": True}

    def test_plain_values_pass_through(self, engine, context):
        assert engine.resolve(42, context) == 42
        assert engine.resolve("no templates here", context) == "no templates here"
        assert engine.resolve(None, context) is None

    def test_resolved_values_are_copies(self, engine, context):
        """Test that mutating a resolved value leaves the context untouched."""
        items = engine.resolve("{{ fetch.body.items }}", context)
        items.append({"name": "third"})
        items[0]["name"] = "changed"

        assert context.variables["fetch"]["body"]["items"] == [{"name": "first"}, {"name": "second"}]

    def test_resolution_is_pure(self, engine, context):
        before = context.snapshot()
        first = engine.resolve({"a": "{{ fetch.body }}"}, context)
        second = engine.resolve({"a": "{{ fetch.body }}"}, context)

        assert first == second
        assert context.snapshot() == before


class TestResolveErrors:
    """Tests for missing or mistyped paths."""

    def test_unknown_root(self, engine, context):
        with pytest.raises(ResolutionError) as exc_info:
            engine.resolve("{{ nope.value }}", context)
        assert exc_info.value.path == "nope.value"

    def test_missing_key(self, engine, context):
        with pytest.raises(ResolutionError) as exc_info:
            engine.resolve("{{ fetch.body.missing }}", context)
        assert "missing" in exc_info.value.message

    def test_index_out_of_range(self, engine, context):
        with pytest.raises(ResolutionError) as exc_info:
            engine.resolve("{{ fetch.body.items.5 }}", context)
        assert "out of range" in exc_info.value.reason

    def test_non_numeric_list_segment(self, engine, context):
        with pytest.raises(ResolutionError):
            engine.resolve("{{ fetch.body.items.first }}", context)

    def test_walking_into_scalar(self, engine, context):
        with pytest.raises(ResolutionError):
            engine.resolve("{{ fetch.statusCode.value }}", context)

    def test_walking_into_null(self, engine, context):
        with pytest.raises(ResolutionError):
            engine.resolve("{{ empty.value }}", context)

    def test_error_inside_mixed_text(self, engine, context):
        with pytest.raises(ResolutionError):
            engine.resolve("Hello {{ nobody.name }}", context)


class TestEvaluate:
    """Tests for simpleeval-backed expressions."""

    def test_node_outputs_by_id(self, engine, context):
        assert engine.evaluate("fetch['statusCode'] == 200", context) is True

    def test_input_name(self, engine, context):
        assert engine.evaluate("input['threshold'] > 5", context) is True

    def test_node_ids_are_sanitized(self, engine, context):
        assert engine.evaluate("my_node['count'] * 2", context) == 6

    def test_helper_functions(self, engine, context):
        assert engine.evaluate("length(fetch['body']['items'])", context) == 2
        assert engine.evaluate("upper('abc')", context) == "ABC"

    def test_unknown_name_raises_resolution_error(self, engine, context):
        with pytest.raises(ResolutionError):
            engine.evaluate("ghost > 1", context)

    def test_syntax_error_raises_resolution_error(self, engine, context):
        with pytest.raises(ResolutionError):
            engine.evaluate("1 +", context)
