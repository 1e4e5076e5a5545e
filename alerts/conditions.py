"""Condition evaluation for alert rules."""
import logging
from numbers import Number

from models.alerts import MetricCondition, PatternCondition
from models.enums import Operator

logger = logging.getLogger("chainwatch.alerts.conditions")

LOG_TAIL_LINES = 100
RECENT_MATCHES = 3


def _is_number(v):
    return isinstance(v, Number) and not isinstance(v, bool)


def _numeric(op):
    def check(value, expected):
        if not (_is_number(value) and _is_number(expected)):
            logger.warning(f"Non-numeric operands for '{op}': {value!r} vs {expected!r}")
            return False
        return value > expected if op == "gt" else value < expected
    return check


def _equals(value, expected):
    if _is_number(value) and _is_number(expected):
        return float(value) == float(expected)
    return value == expected


def _contains(value, expected):
    if value is None or expected is None:
        return False
    return str(expected).lower() in str(value).lower()


OPERATOR_MAP = {
    Operator.GT: _numeric("gt"),
    Operator.LT: _numeric("lt"),
    Operator.EQ: _equals,
    Operator.NE: lambda v, t: not _equals(v, t),
    Operator.CONTAINS: _contains,
}


def tail(lines, limit=LOG_TAIL_LINES):
    return list(lines)[-limit:] if limit else list(lines)


def matching_lines(condition: PatternCondition, lines, limit=LOG_TAIL_LINES):
    """Lines in the bounded tail that match the condition's pattern."""
    return [line for line in tail(lines, limit) if condition.regex.search(line)]


def evaluate(condition, observed, tail_lines=LOG_TAIL_LINES) -> bool:
    """Decide whether an observed value (or log lines) satisfies a condition.

    Never raises: a mismatched or unsupported condition evaluates to False.
    """
    if isinstance(condition, PatternCondition):
        if observed is None:
            return False
        if isinstance(observed, str):
            observed = observed.splitlines()
        return len(matching_lines(condition, observed, tail_lines)) > 0

    if isinstance(condition, MetricCondition):
        if observed is None:
            return False
        func = OPERATOR_MAP.get(condition.operator)
        if func is None:
            return False
        return func(observed, condition.value)

    logger.warning(f"Unsupported condition type: {type(condition).__name__}")
    return False


def pattern_metadata(condition: PatternCondition, lines, tail_lines=LOG_TAIL_LINES):
    matches = matching_lines(condition, lines, tail_lines)
    return {
        "pattern": condition.pattern,
        "matchCount": len(matches),
        "recentMatches": matches[-RECENT_MATCHES:],
    }
