"""
Template interpolation.

Replaces ``{{ expression }}`` placeholders in a template string with the
string form of each evaluated expression. Interpolation never raises: a
placeholder that fails to evaluate becomes an empty string and the failure is
logged.

The ``{{ __uid }}`` placeholder produces a fresh unique id for each
occurrence.
"""

import logging
import re
import secrets
import string
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional

from .engine import ExpressionEngine
from .errors import ExpressionError
from .values import UNDEFINED, is_nullish, to_js_string

logger = logging.getLogger(__name__)

# A "{{" left open at the end of the template is a malformed placeholder
PLACEHOLDER_PATTERN = re.compile(r"\{\{(?P<body>.*?)(?P<close>\}\}|$)")

UID_PLACEHOLDER = "__uid"

_BASE36_ALPHABET = string.digits + string.ascii_lowercase

DataContextListener = Callable[[str, Any], None]


def generate_uid(prefix: str = "invoker", length: int = 8) -> str:
    """Generates an id of the form ``prefix-xxxxxxxx`` with base36 characters."""
    suffix = "".join(secrets.choice(_BASE36_ALPHABET) for _ in range(length))
    return f"{prefix}-{suffix}"


def get_deep_value(obj: Any, path: str) -> Any:
    """
    Resolves a dot path such as ``user.address.city`` through nested mappings.

    Returns UNDEFINED when any segment is missing or crosses a non-mapping.
    """
    current = obj
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return UNDEFINED
        current = current[key]
    return current


class DataContextStore:
    """
    Named data contexts that templates can read from.

    Listeners are called with ``(name, value)`` after every change. A failing
    listener is logged and does not stop the others.
    """

    def __init__(self):
        self._contexts: Dict[str, Any] = {}
        self._listeners: List[DataContextListener] = []
        self._lock = threading.Lock()

    def set(self, name: str, value: Any) -> None:
        with self._lock:
            self._contexts[name] = value
        self._notify(name, value)

    def get(self, name: str, default: Any = None) -> Any:
        with self._lock:
            return self._contexts.get(name, default)

    def update(self, name: str, path: str, value: Any) -> None:
        """Sets ``value`` at a dot path inside a context, creating intermediate mappings."""
        with self._lock:
            context = self._contexts.get(name)
            if not isinstance(context, dict):
                context = {}
                self._contexts[name] = context

            keys = path.split(".")
            current = context
            for key in keys[:-1]:
                child = current.get(key)
                if not isinstance(child, dict):
                    child = {}
                    current[key] = child
                current = child
            current[keys[-1]] = value
        self._notify(name, context)

    def all(self) -> Dict[str, Any]:
        """Returns a shallow copy of every stored context."""
        with self._lock:
            return dict(self._contexts)

    def add_listener(self, listener: DataContextListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: DataContextListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._contexts

    def _notify(self, name: str, value: Any) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(name, value)
            except Exception as error:
                logger.error(
                    "data_context_listener_failed",
                    extra={"context_name": name, "error": str(error)},
                    exc_info=True,
                )


class Interpolator:
    """Substitutes ``{{ }}`` placeholders using an ExpressionEngine."""

    def __init__(
        self,
        engine: Optional[ExpressionEngine] = None,
        data_contexts: Optional[DataContextStore] = None,
        uid_factory: Callable[[], str] = generate_uid,
    ):
        self._engine = engine or ExpressionEngine()
        self._data_contexts = data_contexts
        self._uid_factory = uid_factory

    @property
    def engine(self) -> ExpressionEngine:
        return self._engine

    @property
    def data_contexts(self) -> Optional[DataContextStore]:
        return self._data_contexts

    def interpolate(self, template: Any, context: Optional[Mapping[str, Any]] = None) -> str:
        """Returns the template with every placeholder replaced. Never raises."""
        if not isinstance(template, str):
            return ""

        limits = self._engine.limits
        if len(template) > limits.max_template_length:
            logger.warning(
                "template_truncated",
                extra={
                    "length": len(template),
                    "limit": limits.max_template_length,
                },
            )
            template = template[: limits.max_template_length]

        placeholder_count = len(PLACEHOLDER_PATTERN.findall(template))
        if placeholder_count > limits.max_placeholders:
            logger.warning(
                "template_placeholder_limit",
                extra={"count": placeholder_count, "limit": limits.max_placeholders},
            )

        bindings: Mapping[str, Any] = context if context is not None else {}
        seen = 0

        def replace(match: "re.Match[str]") -> str:
            nonlocal seen
            seen += 1
            # Placeholders past the limit are blanked, not evaluated
            if seen > limits.max_placeholders:
                return ""
            body = match.group("body").strip()
            if not match.group("close"):
                logger.warning(
                    "template_placeholder_failed",
                    extra={
                        "placeholder": body,
                        "error_type": "UnterminatedPlaceholder",
                        "error": "Placeholder is missing its closing '}}'",
                    },
                )
                return ""
            return self._replace(body, bindings)

        return PLACEHOLDER_PATTERN.sub(replace, template)

    def _replace(self, body: str, context: Mapping[str, Any]) -> str:
        if body == UID_PLACEHOLDER:
            return self._uid_factory()

        try:
            value = self._engine.evaluate(body, self._bind_data_context(body, context))
            if is_nullish(value):
                return ""
            return to_js_string(value)
        except ExpressionError as error:
            logger.warning(
                "template_placeholder_failed",
                extra={
                    "placeholder": body,
                    "error_type": type(error).__name__,
                    "error": str(error),
                },
            )
            return ""
        except Exception as error:
            # Host helpers and host values can fail in arbitrary ways
            logger.warning(
                "template_placeholder_failed",
                extra={
                    "placeholder": body,
                    "error_type": type(error).__name__,
                    "error": str(error),
                },
                exc_info=True,
            )
            return ""

    def _bind_data_context(self, body: str, context: Mapping[str, Any]) -> Mapping[str, Any]:
        """Binds a stored data context when the placeholder reads one the caller did not supply."""
        if self._data_contexts is None or "." not in body:
            return context

        name = body.split(".", 1)[0].strip()
        if not name or name in context or name not in self._data_contexts:
            return context

        bound = dict(context)
        bound[name] = self._data_contexts.get(name)
        return bound


def interpolate(
    template: Any,
    context: Optional[Mapping[str, Any]] = None,
    engine: Optional[ExpressionEngine] = None,
) -> str:
    """
    Interpolates a template string.

    Without an engine the call runs on a throwaway engine.
    """
    return Interpolator(engine).interpolate(template, context)
