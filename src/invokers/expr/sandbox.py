"""
Sandbox boundary for expression evaluation.

Holds the identifier deny-list shared by the tokenizer and the evaluator,
copies caller contexts into the closed value model, and exposes host objects
only through an explicit read-only adapter.
"""

from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from .errors import SecurityError
from .limits import DEFAULT_EXPRESSION_LIMITS, ExpressionLimits
from .values import UNDEFINED, is_number, normalize_number

# Names that may never be read, either as identifiers or as properties.
DENIED_IDENTIFIERS: FrozenSet[str] = frozenset(
    {
        # Global objects ('this' stays available as a context variable)
        "globalThis",
        "global",
        "self",
        "window",
        # Browser APIs
        "document",
        "navigator",
        "location",
        "history",
        "localStorage",
        "sessionStorage",
        "indexedDB",
        "cookies",
        "XMLHttpRequest",
        "fetch",
        "WebSocket",
        # Runtime globals
        "process",
        "Buffer",
        "require",
        "module",
        "exports",
        "__dirname",
        "__filename",
        # Code execution and timers
        "eval",
        "Function",
        "setTimeout",
        "setInterval",
        "clearTimeout",
        "clearInterval",
        "alert",
        "prompt",
        "confirm",
        "console",
        "debugger",
        # Prototype pollution
        "prototype",
        "constructor",
        "__proto__",
        # Markup injection
        "innerHTML",
        "outerHTML",
        "innerText",
        "insertAdjacentHTML",
    }
)

_SCRIPT_MARKERS = ("script", "javascript", "vbscript")


def is_denied_identifier(name: str) -> bool:
    """True if the name is on the deny-list, is a dunder name or mentions a script scheme."""
    return (
        name in DENIED_IDENTIFIERS
        or name.startswith("__")
        or any(marker in name for marker in _SCRIPT_MARKERS)
    )


def is_safe_property(
    name: Any, limits: Optional[ExpressionLimits] = None
) -> bool:
    """True if the name may be read from a context value."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    return (
        isinstance(name, str)
        and len(name) <= limits.max_property_name_length
        and not is_denied_identifier(name)
    )


def _is_plain(value: Any) -> bool:
    return value is None or value is UNDEFINED or isinstance(value, (bool, int, float, str))


class HostObjectAdapter:
    """
    Read-only view of a host object.

    Only ``get`` reads through to the wrapped object. Names must pass the
    sandbox check, must not be private (leading underscore) and, when an
    allow-list is given, must be on it. Callables are never returned and
    nested values are sanitized on the way out.
    """

    __slots__ = ("_target", "_allowed", "_sanitize", "_limits")

    def __init__(
        self,
        target: Any,
        sanitize: Optional[Callable[[Any], Any]] = None,
        allowed: Optional[Iterable[str]] = None,
        limits: Optional[ExpressionLimits] = None,
    ):
        object.__setattr__(self, "_target", target)
        object.__setattr__(self, "_allowed", frozenset(allowed) if allowed is not None else None)
        object.__setattr__(self, "_sanitize", sanitize)
        object.__setattr__(self, "_limits", limits or DEFAULT_EXPRESSION_LIMITS)

    def can_read(self, name: str) -> bool:
        if not is_safe_property(name, self._limits) or name.startswith("_"):
            return False
        return self._allowed is None or name in self._allowed

    def get(self, name: str) -> Any:
        """Returns the named attribute, or UNDEFINED when it is not readable."""
        if not self.can_read(name):
            return UNDEFINED

        target = self._target
        if isinstance(target, Mapping):
            value = target.get(name, UNDEFINED)
        else:
            value = getattr(target, name, UNDEFINED)

        if callable(value):
            return UNDEFINED
        if _is_plain(value):
            return value
        if self._sanitize is not None:
            return self._sanitize(value)
        return UNDEFINED

    @property
    def type_name(self) -> str:
        return type(self._target).__name__

    def __setattr__(self, name: str, value: Any) -> None:
        raise SecurityError(f"Host object is read-only: cannot set '{name}'")

    def __delattr__(self, name: str) -> None:
        raise SecurityError(f"Host object is read-only: cannot delete '{name}'")

    def __repr__(self) -> str:
        return f"HostObjectAdapter({self.type_name})"


class ContextSanitizer:
    """
    Copies caller-supplied values into the closed value model.

    - callables are dropped
    - mappings keep only safe string keys, bounded per nested level
    - arrays are copied and truncated
    - nesting beyond the depth limit collapses to an empty mapping
    - shared and cyclic references are copied once
    - anything else is wrapped in a HostObjectAdapter
    """

    def __init__(self, limits: Optional[ExpressionLimits] = None):
        self._limits = limits or DEFAULT_EXPRESSION_LIMITS
        # id -> (original, copy); the original is kept alive so ids stay unique
        self._memo: Dict[int, Tuple[Any, Any]] = {}

    def sanitize_context(self, context: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Sanitizes the top-level bindings. Unsafe names are left out."""
        safe: Dict[str, Any] = {}
        if not context:
            return safe

        for key, value in context.items():
            if not is_safe_property(key, self._limits):
                continue
            if callable(value):
                continue
            safe[key] = self.sanitize_value(value, 0)

        return safe

    def sanitize_value(self, value: Any, depth: int = 0) -> Any:
        if is_number(value):
            return normalize_number(value)
        if _is_plain(value):
            return value

        if callable(value):
            # Functions and classes never cross the boundary
            return UNDEFINED

        if isinstance(value, HostObjectAdapter):
            return value

        memo_key = id(value)
        if memo_key in self._memo:
            return self._memo[memo_key][1]

        if isinstance(value, (list, tuple)):
            if depth > self._limits.max_sanitize_depth:
                return []
            items: List[Any] = []
            self._memo[memo_key] = (value, items)
            for item in value[: self._limits.max_sanitize_array_length]:
                items.append(self.sanitize_value(item, depth + 1))
            return items

        if isinstance(value, Mapping):
            if depth > self._limits.max_sanitize_depth:
                return {}
            obj: Dict[str, Any] = {}
            self._memo[memo_key] = (value, obj)
            count = 0
            for key, item in value.items():
                if count >= self._limits.max_sanitize_keys:
                    break
                if not is_safe_property(key, self._limits):
                    continue
                if callable(item):
                    continue
                obj[key] = self.sanitize_value(item, depth + 1)
                count += 1
            return obj

        adapter = HostObjectAdapter(
            value, sanitize=self._sanitize_nested, limits=self._limits
        )
        self._memo[memo_key] = (value, adapter)
        return adapter

    def _sanitize_nested(self, value: Any) -> Any:
        # Host reads happen lazily, so they start a fresh depth budget
        return self.sanitize_value(value, 0)


def sanitize_context(
    context: Optional[Mapping[str, Any]], limits: Optional[ExpressionLimits] = None
) -> Dict[str, Any]:
    """Returns a sanitized copy of a context mapping."""
    return ContextSanitizer(limits).sanitize_context(context)
