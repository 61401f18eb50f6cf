"""Custom rule evaluation.

Rules are checked in the order the caller listed them and evaluation stops
at the first violation. Evaluation is pure: it reads only the normalized
fields and the rules.

Numeric policy: ``greater_than`` and ``less_than`` parse both operands with
:func:`parse_numeric`. When either operand does not parse, the rule is not
violated. A non-numeric operand is never treated as a configuration error.
"""

import math
import re
from collections.abc import Callable, Sequence
from operator import attrgetter
from typing import Any

from fraud_screening.domain.models import MAX_FRAUD_SCORE, FraudVerdict, NormalizedFields
from fraud_screening.schemas.screening import (
    CustomRule,
    FieldValue,
    FraudSource,
    RuleCondition,
    TransactionField,
    as_text,
)

# Leading decimal literal, e.g. "150", " -3.5e2 ", "99.90 USD"
_NUMERIC_PREFIX = re.compile(r"\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")

FIELD_ACCESSORS: dict[TransactionField, Callable[[NormalizedFields], FieldValue]] = {
    field: attrgetter(field.value) for field in TransactionField
}


def parse_numeric(value: Any) -> float | None:
    """Parse a rule operand as a number.

    Numbers pass through; text is parsed from its leading decimal literal.
    Returns None for anything that does not parse (including booleans,
    missing values and NaN).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        match = _NUMERIC_PREFIX.match(value)
        if match is None:
            return None
        number = float(match.group(1))
    else:
        return None
    return None if math.isnan(number) else number


def format_rule_value(value: Any) -> str:
    text = as_text(value)
    return "null" if text is None else text


def _strictly_equal(actual: Any, expected: Any) -> bool:
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    if isinstance(actual, int | float) and isinstance(expected, int | float):
        return actual == expected
    return type(actual) is type(expected) and actual == expected


def _contains(actual: Any, expected: Any) -> bool:
    text = as_text(actual)
    return text is not None and format_rule_value(expected) in text


def _starts_with(actual: Any, expected: Any) -> bool:
    text = as_text(actual)
    return text is not None and text.startswith(format_rule_value(expected))


def _ends_with(actual: Any, expected: Any) -> bool:
    text = as_text(actual)
    return text is not None and text.endswith(format_rule_value(expected))


def _greater_than(actual: Any, expected: Any) -> bool:
    left, right = parse_numeric(actual), parse_numeric(expected)
    return left is not None and right is not None and left > right


def _less_than(actual: Any, expected: Any) -> bool:
    left, right = parse_numeric(actual), parse_numeric(expected)
    return left is not None and right is not None and left < right


CONDITION_CHECKS: dict[RuleCondition, Callable[[Any, Any], bool]] = {
    RuleCondition.EQUALS: _strictly_equal,
    RuleCondition.CONTAINS: _contains,
    RuleCondition.GREATER_THAN: _greater_than,
    RuleCondition.LESS_THAN: _less_than,
    RuleCondition.STARTS_WITH: _starts_with,
    RuleCondition.ENDS_WITH: _ends_with,
}


def is_violated(fields: NormalizedFields, rule: CustomRule) -> bool:
    """Check a single rule against the normalized fields."""
    actual = FIELD_ACCESSORS[rule.field](fields)
    return CONDITION_CHECKS[rule.condition](actual, rule.value)


def rule_violation_reason(rule: CustomRule) -> str:
    return (
        f"Rule violation: {rule.field.value} {rule.condition.value} "
        f"{format_rule_value(rule.value)}"
    )


def evaluate_rules(
    fields: NormalizedFields,
    rules: Sequence[CustomRule],
) -> FraudVerdict | None:
    """Return a rule verdict for the first violated rule, or None if none fire."""
    for rule in rules:
        if is_violated(fields, rule):
            return FraudVerdict(
                is_fraud_detected=True,
                fraud_source=FraudSource.RULE,
                fraud_reason=rule_violation_reason(rule),
                fraud_score=MAX_FRAUD_SCORE,
            )
    return None
