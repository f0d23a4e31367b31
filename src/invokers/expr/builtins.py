"""
Helper functions available inside expressions.

This is the complete, fixed set of callables an expression can reach:
template authors cannot define functions, and context values that are
functions are stripped by the sandbox.

All helpers are pure, except that ``timeAgo`` reads the evaluation clock
carried by ``BuiltinContext``. Helpers are forgiving about bad input: they
return an empty or neutral value rather than raising, because they run inside
template rendering. Argument-count mistakes still raise ``BuiltinError``.
"""

import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from .errors import BuiltinError, EvaluationError
from .limits import DEFAULT_EXPRESSION_LIMITS, ExpressionLimits
from .sandbox import HostObjectAdapter
from .values import (
    UNDEFINED,
    ExprValue,
    is_nan,
    is_nullish,
    is_number,
    is_truthy,
    normalize_number,
    to_js_string,
)


class BuiltinContext:
    """Context passed to helper functions."""

    def __init__(
        self,
        limits: ExpressionLimits = DEFAULT_EXPRESSION_LIMITS,
        position: int = 0,
        source: str = "",
        now: Optional[float] = None,
    ):
        self.limits = limits
        self.position = position
        self.source = source
        # Wall-clock time of the evaluation, in seconds since the epoch
        self.now = now


# Signature of a helper function.
BuiltinFunction = Callable[[Sequence[ExprValue], BuiltinContext], ExprValue]

# Function registry for helpers.
FunctionRegistry = Dict[str, BuiltinFunction]


def _get_arg(args: Sequence[ExprValue], index: int, default: ExprValue = UNDEFINED) -> ExprValue:
    """Gets an argument by index, or the default when it is missing."""
    if index >= len(args):
        return default
    return args[index]


def _assert_arg_count_range(
    args: Sequence[ExprValue], min_count: int, max_count: int, function_name: str
) -> None:
    """Asserts argument count range."""
    if len(args) < min_count or len(args) > max_count:
        if min_count == max_count:
            expected = f"{min_count}"
        else:
            expected = f"{min_count}-{max_count}"
        raise BuiltinError(
            function_name,
            f"expected {expected} argument(s), got {len(args)}",
        )


def _read(item: ExprValue, key: str) -> ExprValue:
    """Reads a property from an array element for filter/sort."""
    if isinstance(item, dict):
        return item.get(key, UNDEFINED)
    if isinstance(item, HostObjectAdapter):
        return item.get(key)
    return UNDEFINED


# ============================================================
# String Helpers
# ============================================================


def _capitalize(args: Sequence[ExprValue], ctx: BuiltinContext) -> ExprValue:
    """capitalize(s) -> first letter upper-cased, the rest lower-cased."""
    _assert_arg_count_range(args, 1, 1, "capitalize")
    s = args[0]
    if not isinstance(s, str):
        return ""
    return s[:1].upper() + s[1:].lower()


def _truncate(args: Sequence[ExprValue], ctx: BuiltinContext) -> ExprValue:
    """truncate(s, length) -> s cut to length characters followed by '...'."""
    _assert_arg_count_range(args, 2, 2, "truncate")
    s, length = args
    if not isinstance(s, str):
        return ""
    if not is_number(length) or is_nan(length):
        return s
    if len(s) <= length:
        return s
    limit = int(length) if length > 0 else 0
    return s[:limit] + "..."


def _pluralize(args: Sequence[ExprValue], ctx: BuiltinContext) -> ExprValue:
    """pluralize(count, singular, plural?) -> '1 item' / '3 items'."""
    _assert_arg_count_range(args, 2, 3, "pluralize")
    count = args[0]
    singular = to_js_string(args[1])
    plural = _get_arg(args, 2)
    if count == 1 and not isinstance(count, bool):
        word = singular
    elif isinstance(plural, str) and plural:
        word = plural
    else:
        word = singular + "s"
    return f"{to_js_string(count)} {word}"


# ============================================================
# Array Helpers
# ============================================================


def _join(args: Sequence[ExprValue], ctx: BuiltinContext) -> ExprValue:
    """join(items, separator=', ') -> string"""
    _assert_arg_count_range(args, 1, 2, "join")
    items = args[0]
    separator = _get_arg(args, 1, ", ")
    if not isinstance(items, list):
        return ""
    if is_nullish(separator):
        separator = ", "
    return to_js_string(separator).join(
        "" if is_nullish(item) else to_js_string(item) for item in items
    )


def _filter(args: Sequence[ExprValue], ctx: BuiltinContext) -> ExprValue:
    """
    filter(items, property) -> array

    Keeps the elements whose ``property`` is truthy. Without a property name
    the array is returned unchanged.
    """
    _assert_arg_count_range(args, 1, 2, "filter")
    items = args[0]
    predicate = _get_arg(args, 1)
    if not isinstance(items, list):
        return []
    if not isinstance(predicate, str):
        return list(items)

    return [item for item in items if is_truthy(item) and is_truthy(_read(item, predicate))]


def _sort_key(value: ExprValue):
    # Numbers before strings, missing values last
    if is_nullish(value):
        return (2, 0, "")
    if is_number(value) and not is_nan(value):
        return (0, value, "")
    return (1, 0, to_js_string(value))


def _sort(args: Sequence[ExprValue], ctx: BuiltinContext) -> ExprValue:
    """
    sort(items, property?) -> array

    Returns a sorted copy. Without a property, elements are compared by
    their string form; with one, by that property's value.
    """
    _assert_arg_count_range(args, 1, 2, "sort")
    items = args[0]
    prop = _get_arg(args, 1)
    if not isinstance(items, list):
        return []
    if not isinstance(prop, str) or not prop:
        return sorted(items, key=lambda item: (is_nullish(item), to_js_string(item)))
    return sorted(items, key=lambda item: _sort_key(_read(item, prop)))


# ============================================================
# Date / Time Helpers
# ============================================================


def _to_datetime(value: ExprValue) -> Optional[datetime]:
    """Accepts epoch milliseconds or an ISO-8601 string."""
    if is_number(value) and not is_nan(value) and not math.isinf(value):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


def _format_date(args: Sequence[ExprValue], ctx: BuiltinContext) -> ExprValue:
    """formatDate(date, format='MM/dd/yyyy') -> string, '' for invalid dates."""
    _assert_arg_count_range(args, 1, 2, "formatDate")
    moment = _to_datetime(args[0])
    if moment is None:
        return ""
    fmt = _get_arg(args, 1, "MM/dd/yyyy")
    if not isinstance(fmt, str):
        fmt = "MM/dd/yyyy"
    return (
        fmt.replace("yyyy", f"{moment.year:04d}", 1)
        .replace("MM", f"{moment.month:02d}", 1)
        .replace("dd", f"{moment.day:02d}", 1)
    )


def _time_ago(args: Sequence[ExprValue], ctx: BuiltinContext) -> ExprValue:
    """timeAgo(date) -> 'just now', '5m ago', '3h ago', '2d ago' or a date."""
    _assert_arg_count_range(args, 1, 1, "timeAgo")
    moment = _to_datetime(args[0])
    if moment is None:
        return ""

    now = ctx.now if ctx.now is not None else datetime.now(timezone.utc).timestamp()
    diff_seconds = math.floor(now - moment.timestamp())
    diff_minutes = diff_seconds // 60
    diff_hours = diff_minutes // 60
    diff_days = diff_hours // 24

    if diff_seconds < 60:
        return "just now"
    if diff_minutes < 60:
        return f"{diff_minutes}m ago"
    if diff_hours < 24:
        return f"{diff_hours}h ago"
    if diff_days < 7:
        return f"{diff_days}d ago"
    return f"{moment.month}/{moment.day}/{moment.year}"


# ============================================================
# Number Helpers
# ============================================================


def _group(value: float, min_digits: int, max_digits: int) -> str:
    """Formats with thousands separators, trimming zeros down to min_digits."""
    text = f"{value:,.{max_digits}f}"
    if max_digits > min_digits and "." in text:
        whole, fraction = text.split(".")
        fraction = fraction.rstrip("0")
        if len(fraction) < min_digits:
            fraction = fraction.ljust(min_digits, "0")
        text = f"{whole}.{fraction}" if fraction else whole
    return text


def _digits(options: Mapping[str, Any], key: str, default: int) -> int:
    value = options.get(key, default)
    if not is_number(value) or is_nan(value):
        return default
    return int(max(0, min(20, value)))


def _format_number(args: Sequence[ExprValue], ctx: BuiltinContext) -> ExprValue:
    """
    formatNumber(num, options?) -> string

    Options: minimumFractionDigits (default 0), maximumFractionDigits
    (default 2). Non-numbers format as '0'.
    """
    _assert_arg_count_range(args, 1, 2, "formatNumber")
    num = args[0]
    if not is_number(num) or is_nan(num):
        return "0"
    num = normalize_number(num)
    if math.isinf(num):
        return "∞" if num > 0 else "-∞"

    options = _get_arg(args, 1)
    if not isinstance(options, dict):
        options = {}
    min_digits = _digits(options, "minimumFractionDigits", 0)
    max_digits = max(min_digits, _digits(options, "maximumFractionDigits", 2))
    return _group(num, min_digits, max_digits)


CURRENCY_SYMBOLS: Dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
}

# Currencies formatted without minor units
_ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW"})


def _format_currency(args: Sequence[ExprValue], ctx: BuiltinContext) -> ExprValue:
    """formatCurrency(amount, currency='USD') -> '$1,234.50'"""
    _assert_arg_count_range(args, 1, 3, "formatCurrency")
    amount = args[0]
    if is_number(amount):
        amount = normalize_number(amount)
    if not is_number(amount) or is_nan(amount) or math.isinf(amount):
        return "$0.00"

    currency = _get_arg(args, 1, "USD")
    code = currency.upper() if isinstance(currency, str) and currency else "USD"
    digits = 0 if code in _ZERO_DECIMAL_CURRENCIES else 2
    body = f"{abs(amount):,.{digits}f}"
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{body}"


# ============================================================
# Generic Helpers
# ============================================================


def _empty(value: ExprValue) -> bool:
    if is_nullish(value):
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def _is_empty(args: Sequence[ExprValue], ctx: BuiltinContext) -> ExprValue:
    """isEmpty(x) -> true for null, blank strings, empty arrays and objects."""
    _assert_arg_count_range(args, 0, 1, "isEmpty")
    return _empty(_get_arg(args, 0))


def _is_not_empty(args: Sequence[ExprValue], ctx: BuiltinContext) -> ExprValue:
    """isNotEmpty(x) -> negation of isEmpty."""
    _assert_arg_count_range(args, 0, 1, "isNotEmpty")
    return not _empty(_get_arg(args, 0))


# ============================================================
# Registry
# ============================================================

# Registry of all helper functions.
BUILTIN_FUNCTIONS: FunctionRegistry = {
    # String helpers
    "capitalize": _capitalize,
    "truncate": _truncate,
    "pluralize": _pluralize,
    # Array helpers
    "join": _join,
    "filter": _filter,
    "sort": _sort,
    # Date/time helpers
    "formatDate": _format_date,
    "timeAgo": _time_ago,
    # Number helpers
    "formatNumber": _format_number,
    "formatCurrency": _format_currency,
    # Generic helpers
    "isEmpty": _is_empty,
    "isNotEmpty": _is_not_empty,
}


def call_builtin(
    name: str,
    args: Sequence[ExprValue],
    context: BuiltinContext,
    functions: Optional[FunctionRegistry] = None,
) -> ExprValue:
    """
    Calls a helper function by name.

    Args:
        name: The function name
        args: The function arguments
        context: The evaluation context
        functions: Optional function registry (defaults to BUILTIN_FUNCTIONS)

    Returns:
        The function result

    Raises:
        EvaluationError: If the function doesn't exist
        BuiltinError: If the function rejects its arguments
    """
    functions = BUILTIN_FUNCTIONS if functions is None else functions
    fn = functions.get(name)
    if fn is None:
        raise EvaluationError(
            f"Unknown function: {name}", context.position, context.source
        )
    return fn(args, context)


def is_builtin_function(
    name: str, functions: Optional[FunctionRegistry] = None
) -> bool:
    """Checks if a name is a helper function."""
    functions = BUILTIN_FUNCTIONS if functions is None else functions
    return name in functions


