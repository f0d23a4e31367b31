"""
Runtime values of the expression language.

The value model mirrors the loosely-typed semantics that template authors
expect from the browser:

- ``None`` is null.
- ``UNDEFINED`` is the "no value" sentinel returned for missing identifiers,
  properties and indices.
- ``bool``, ``int``/``float`` (numbers, including NaN), ``str``.
- ``list`` (array) and ``dict`` with string keys (object).
- ``HostObjectAdapter`` (opaque host reference, see ``sandbox``).

Coercion helpers below follow the same rules as the browser's ``String()``,
``Number()``, ``==`` and ``===``.
"""

import math
import re
from typing import Any, Mapping, Optional, Sequence, Union


class _Undefined:
    """The "no value" sentinel. Falsy, singleton."""

    _instance: Optional["_Undefined"] = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __reduce__(self):
        return (_Undefined, ())


UNDEFINED = _Undefined()

NAN = float("nan")

# Largest integer a double holds exactly; ints beyond it are carried as floats
MAX_SAFE_INTEGER = 2**53

# Runtime value types for the expression language.
ExprValue = Union[
    str,
    float,
    int,
    bool,
    None,
    _Undefined,
    Sequence["ExprValue"],
    Mapping[str, "ExprValue"],
    Any,
]

_NUMERIC_STRING = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_INTEGER_STRING = re.compile(r"^[+-]?\d+$")


def is_undefined(value: Any) -> bool:
    return value is UNDEFINED


def is_nullish(value: Any) -> bool:
    """True for null and the no-value sentinel."""
    return value is None or value is UNDEFINED


def is_number(value: Any) -> bool:
    """True for int and float, but not bool."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


def normalize_number(value: Union[int, float]) -> Union[int, float]:
    """
    Keeps a number within double range.

    Integers larger than ``MAX_SAFE_INTEGER`` become floats, and integers past
    the float range become signed infinity.
    """
    if isinstance(value, int) and not isinstance(value, bool) and abs(value) > MAX_SAFE_INTEGER:
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    return value


def number_from_text(text: str) -> Union[int, float]:
    """Parses numeric text as a double, keeping exact integers as ``int``."""
    number = float(text)
    if _INTEGER_STRING.match(text) and abs(number) <= MAX_SAFE_INTEGER:
        return int(number)
    return number


def is_object(value: Any) -> bool:
    """True for arrays, mappings and host references."""
    if value is None or value is UNDEFINED:
        return False
    return not isinstance(value, (bool, int, float, str))


def get_type_name(value: Any) -> str:
    """Gets the type name of a value for error messages."""
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    return "object"


def is_truthy(value: Any) -> bool:
    """Truthiness: null, no-value, false, 0, NaN and "" are falsy; objects are truthy."""
    if value is None or value is UNDEFINED:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def format_number(value: Union[int, float]) -> str:
    """String form of a number: integral floats drop their fraction."""
    value = normalize_number(value)
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == int(value) and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if "e" in text:
        mantissa, exponent = text.split("e")
        sign = "-" if exponent.startswith("-") else "+"
        text = f"{mantissa}e{sign}{exponent.lstrip('+-').lstrip('0') or '0'}"
    return text


def to_js_string(value: Any, _seen: Optional[set] = None) -> str:
    """Converts a value to its string form."""
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        seen = _seen if _seen is not None else set()
        if id(value) in seen:
            return ""
        seen.add(id(value))
        try:
            return ",".join(
                "" if is_nullish(item) else to_js_string(item, seen) for item in value
            )
        finally:
            seen.discard(id(value))
    return "[object Object]"


def to_primitive(value: Any) -> Any:
    """Objects and arrays collapse to their string form; primitives are unchanged."""
    if is_object(value):
        return to_js_string(value)
    return value


def to_number(value: Any) -> Union[int, float]:
    """Numeric conversion. Unconvertible values become NaN."""
    if value is UNDEFINED:
        return NAN
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (int, float)):
        return normalize_number(value)
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return 0
        if text in ("Infinity", "+Infinity"):
            return math.inf
        if text == "-Infinity":
            return -math.inf
        if _NUMERIC_STRING.match(text):
            return number_from_text(text)
        return NAN
    if isinstance(value, (list, tuple)):
        return to_number(to_js_string(value))
    return NAN


def strict_equals(a: Any, b: Any) -> bool:
    """The ``===`` operator."""
    if is_nullish(a) or is_nullish(b):
        return a is b
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if is_number(a) and is_number(b):
        return a == b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    return a is b


def loose_equals(a: Any, b: Any) -> bool:
    """The ``==`` operator."""
    if is_nullish(a) or is_nullish(b):
        return is_nullish(a) and is_nullish(b)

    if is_object(a) and is_object(b):
        return a is b

    # Objects compare through their string form
    a = to_primitive(a)
    b = to_primitive(b)

    if isinstance(a, bool):
        a = to_number(a)
    if isinstance(b, bool):
        b = to_number(b)

    if isinstance(a, str) and isinstance(b, str):
        return a == b

    return to_number(a) == to_number(b)
