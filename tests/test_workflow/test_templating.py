"""Unit tests for ``{{path}}`` placeholder resolution."""

from app.core.workflow.templating import (
    lookup_path,
    resolve,
    resolve_value,
    stringify,
)


class TestResolve:
    """Tests for resolve()."""

    def test_text_without_placeholders_is_unchanged(self, make_context):
        """Test plain text passes through."""
        assert resolve("hello world", make_context()) == "hello world"

    def test_none_template_is_empty(self, make_context):
        """Test a missing template resolves to an empty string."""
        assert resolve(None, make_context()) == ""

    def test_trigger_field(self, make_context):
        """Test top-level trigger fields are resolved first."""
        ctx = make_context({"name": "Ada", "body": {"name": "Bob"}})
        assert resolve("Hi {{name}}", ctx) == "Hi Ada"

    def test_trigger_body_field(self, make_context):
        """Test webhook body fields are resolved when absent at the top level."""
        ctx = make_context({"body": {"email": "a@b.com"}})
        assert resolve("To: {{ email }}", ctx) == "To: a@b.com"

    def test_step_output_dotted_path(self, make_context):
        """Test step outputs are walked by dotted path."""
        ctx = make_context(outputs={"http1": {"data": {"items": [{"title": "first"}]}, "status": 200}})
        assert resolve("{{http1.status}} {{http1.data.items.0.title}}", ctx) == "200 first"

    def test_unresolvable_placeholder_is_left_verbatim(self, make_context):
        """Test unknown paths stay in the text."""
        ctx = make_context({"a": 1}, outputs={"s": {"x": 1}})
        assert resolve("{{missing}} {{s.y}} {{nostep.x}}", ctx) == "{{missing}} {{s.y}} {{nostep.x}}"

    def test_value_rendering(self, make_context):
        """Test booleans, numbers and structures are rendered as text."""
        ctx = make_context({"flag": True, "count": 3, "obj": {"k": "v"}, "items": [1, 2]})
        assert resolve("{{flag}} {{count}} {{obj}} {{items}}", ctx) == 'true 3 {"k": "v"} [1, 2]'

    def test_resolution_is_idempotent(self, make_context):
        """Test resolving an already-resolved text changes nothing."""
        ctx = make_context({"name": "Ada"})
        once = resolve("Hi {{name}} {{unknown}}", ctx)
        assert resolve(once, ctx) == once


class TestHelpers:
    """Tests for lookup_path(), stringify() and resolve_value()."""

    def test_lookup_path_returns_raw_value(self, make_context):
        """Test the raw value is returned without stringification."""
        ctx = make_context(outputs={"s": {"n": 5}})
        assert lookup_path("s.n", ctx) == 5
        assert lookup_path("s", ctx) is None

    def test_stringify_false(self):
        """Test False renders lowercase."""
        assert stringify(False) == "false"

    def test_resolve_value_nested(self, make_context):
        """Test nested structures have every string resolved."""
        ctx = make_context({"token": "abc"})
        value = {"headers": {"Authorization": "Bearer {{token}}"}, "list": ["{{token}}", 1]}
        assert resolve_value(value, ctx) == {"headers": {"Authorization": "Bearer abc"}, "list": ["abc", 1]}
