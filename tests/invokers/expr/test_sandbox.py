"""
Tests for the sandbox boundary: deny-list, context sanitization and host
object adapters.
"""

import pytest

from invokers.expr import (
    UNDEFINED,
    ContextSanitizer,
    HostObjectAdapter,
    SecurityError,
    evaluate,
    is_denied_identifier,
    is_safe_property,
    sanitize_context,
)


class Profile:
    def __init__(self):
        self.name = "Ada"
        self.role = "admin"
        self._token = "secret"

    def delete(self):
        raise AssertionError("must never be called")


class TestDenyList:
    """Tests for identifier and property checks."""

    @pytest.mark.parametrize(
        "name",
        ["window", "globalThis", "constructor", "__proto__", "__custom", "noscript"],
    )
    def test_denied_names(self, name):
        assert is_denied_identifier(name)
        assert not is_safe_property(name)

    @pytest.mark.parametrize("name", ["name", "this", "items", "_private", "$el"])
    def test_allowed_names(self, name):
        assert not is_denied_identifier(name)

    def test_property_name_length_limit(self):
        assert is_safe_property("a" * 50)
        assert not is_safe_property("a" * 51)

    def test_non_string_property_is_unsafe(self):
        assert not is_safe_property(1)
        assert not is_safe_property(None)


class TestSanitizeContext:
    """Tests for context sanitization."""

    def test_drops_unsafe_keys_and_callables(self):
        context = {
            "name": "Ada",
            "constructor": 1,
            "__proto__": {},
            "callback": lambda: None,
        }
        assert sanitize_context(context) == {"name": "Ada"}

    def test_strips_nested_callables_and_unsafe_keys(self):
        context = {"user": {"name": "Ada", "save": print, "prototype": {}}}
        assert sanitize_context(context) == {"user": {"name": "Ada"}}

    def test_replaces_callables_in_arrays(self):
        result = sanitize_context({"items": [1, print]})
        assert result["items"] == [1, UNDEFINED]

    def test_does_not_mutate_input(self):
        nested = {"a": [1, 2], "f": print}
        context = {"nested": nested}
        result = sanitize_context(context)
        result["nested"]["a"].append(3)
        assert nested == {"a": [1, 2], "f": print}

    def test_bounds_keys_per_mapping(self):
        context = {"data": {f"k{i}": i for i in range(60)}}
        assert len(sanitize_context(context)["data"]) == 50

    def test_truncates_arrays(self):
        context = {"items": list(range(1500))}
        assert len(sanitize_context(context)["items"]) == 1000

    def test_collapses_deep_nesting(self):
        value: dict = {"leaf": True}
        for _ in range(60):
            value = {"child": value}

        current = sanitize_context({"root": value})["root"]
        for _ in range(50):
            assert "child" in current
            current = current["child"]
        assert current == {"child": {}}

    def test_cyclic_references_are_preserved_once(self):
        node: dict = {"name": "loop"}
        node["self"] = node
        result = sanitize_context({"node": node})["node"]
        assert result["self"] is result
        assert result is not node

    def test_shared_references_are_copied_once(self):
        shared = [1, 2]
        result = sanitize_context({"a": shared, "b": shared})
        assert result["a"] is result["b"]

    def test_wraps_host_objects(self):
        result = sanitize_context({"profile": Profile()})
        assert isinstance(result["profile"], HostObjectAdapter)

    def test_empty_context(self):
        assert sanitize_context(None) == {}
        assert ContextSanitizer().sanitize_context({}) == {}


class TestHostObjectAdapter:
    """Tests for the read-only host object view."""

    def test_reads_public_attributes(self):
        adapter = HostObjectAdapter(Profile())
        assert adapter.get("name") == "Ada"
        assert adapter.type_name == "Profile"

    def test_hides_private_and_callable_members(self):
        adapter = HostObjectAdapter(Profile())
        assert adapter.get("_token") is UNDEFINED
        assert adapter.get("delete") is UNDEFINED
        assert adapter.get("__class__") is UNDEFINED
        assert adapter.get("missing") is UNDEFINED

    def test_allow_list(self):
        adapter = HostObjectAdapter(Profile(), allowed=["name"])
        assert adapter.get("name") == "Ada"
        assert adapter.get("role") is UNDEFINED

    def test_reads_mapping_targets(self):
        adapter = HostObjectAdapter({"a": 1, "fn": print})
        assert adapter.get("a") == 1
        assert adapter.get("fn") is UNDEFINED

    def test_nested_values_need_a_sanitizer(self):
        target = Profile()
        target.tags = ["x"]
        assert HostObjectAdapter(target).get("tags") is UNDEFINED
        assert HostObjectAdapter(target, sanitize=list).get("tags") == ["x"]

    def test_is_read_only(self):
        adapter = HostObjectAdapter(Profile())
        with pytest.raises(SecurityError):
            adapter.name = "Eve"
        with pytest.raises(SecurityError):
            del adapter.name


class TestEvaluationSandbox:
    """Sandbox behaviour observed through evaluate()."""

    def test_window_is_rejected(self):
        with pytest.raises(SecurityError):
            evaluate("window", {})

    def test_proto_access_is_rejected(self):
        with pytest.raises(SecurityError):
            evaluate("this.__proto__", {"this": {}})

    def test_bracket_access_to_prototype_yields_no_value(self):
        assert evaluate("this['__proto__']", {"this": {}}) is UNDEFINED
        assert evaluate("this['constructor']", {"this": {}}) is UNDEFINED

    def test_methods_on_host_objects_are_unreachable(self):
        assert evaluate("profile.delete", {"profile": Profile()}) is UNDEFINED
        assert evaluate("profile.name", {"profile": Profile()}) == "Ada"

    def test_security_errors_are_never_degraded(self):
        with pytest.raises(SecurityError):
            evaluate("a || constructor", {"a": 1})
