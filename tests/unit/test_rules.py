"""Unit tests for custom rule evaluation."""

import math

import pytest

from fraud_screening.domain.models import MAX_FRAUD_SCORE, normalize_transaction
from fraud_screening.domain.rules import (
    as_text,
    evaluate_rules,
    format_rule_value,
    is_violated,
    parse_numeric,
    rule_violation_reason,
)
from fraud_screening.schemas.screening import CustomRule, FraudSource, TransactionIn
from tests.conftest import build_transaction


def rule(field: str, condition: str, value) -> CustomRule:
    return CustomRule.model_validate({"field": field, "condition": condition, "value": value})


def fields_for(**overrides):
    return normalize_transaction(build_transaction("tx-rules", **overrides))


class TestParseNumeric:
    """Test numeric operand parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (150, 150.0),
            (99.5, 99.5),
            ("150", 150.0),
            (" -3.5 ", -3.5),
            ("1e3", 1000.0),
            ("99.90 USD", 99.9),
            (".5", 0.5),
        ],
    )
    def test_parses_numbers_and_leading_literals(self, value, expected):
        """Numbers pass through and text is parsed from its leading literal."""
        assert parse_numeric(value) == expected

    @pytest.mark.parametrize("value", [None, True, False, "abc", "", "USD 10", float("nan"), [1]])
    def test_unparseable_values_return_none(self, value):
        """Anything that is not a number yields None."""
        assert parse_numeric(value) is None

    def test_infinity_is_a_number(self):
        assert math.isinf(parse_numeric(float("inf")))


class TestTextRendering:
    """Test as_text / format_rule_value."""

    def test_as_text(self):
        assert as_text(None) is None
        assert as_text(True) == "true"
        assert as_text(150.0) == "150"
        assert as_text(150.25) == "150.25"
        assert as_text("web") == "web"

    def test_format_rule_value_renders_null(self):
        assert format_rule_value(None) == "null"
        assert format_rule_value(100) == "100"


class TestConditions:
    """Test each rule condition against normalized fields."""

    def test_equals_is_type_strict(self):
        """Equal text matches; a number never equals its text form."""
        fields = fields_for(transaction_channel="web", transaction_amount="150")
        assert is_violated(fields, rule("transaction_channel", "equals", "web")) is True
        assert is_violated(fields, rule("transaction_channel", "equals", "WEB")) is False
        assert is_violated(fields, rule("transaction_amount", "equals", 150)) is False

    def test_equals_numbers_compare_by_value(self):
        fields = fields_for(transaction_amount=150)
        assert is_violated(fields, rule("transaction_amount", "equals", 150.0)) is True

    def test_equals_bool_does_not_match_number(self):
        fields = fields_for(transaction_amount=1)
        assert is_violated(fields, rule("transaction_amount", "equals", True)) is False

    def test_equals_missing_field_matches_null(self):
        fields = fields_for(payer_device=None)
        assert is_violated(fields, rule("payer_device", "equals", None)) is True

    def test_contains(self):
        fields = fields_for(payer_email="fraudster@mail.ru")
        assert is_violated(fields, rule("payer_email", "contains", "mail.ru")) is True
        assert is_violated(fields, rule("payer_email", "contains", "gmail")) is False

    def test_contains_on_numeric_field_uses_text_form(self):
        fields = fields_for(payer_mobile=9876543210)
        assert is_violated(fields, rule("payer_mobile", "contains", "6543")) is True

    def test_starts_with_and_ends_with(self):
        fields = fields_for(payer_email="bot123@tempmail.com")
        assert is_violated(fields, rule("payer_email", "starts_with", "bot")) is True
        assert is_violated(fields, rule("payer_email", "starts_with", "tempmail")) is False
        assert is_violated(fields, rule("payer_email", "ends_with", "tempmail.com")) is True
        assert is_violated(fields, rule("payer_email", "ends_with", ".org")) is False

    def test_text_conditions_never_fire_on_missing_field(self):
        fields = fields_for(payer_browser=None)
        assert is_violated(fields, rule("payer_browser", "contains", "")) is False
        assert is_violated(fields, rule("payer_browser", "starts_with", "")) is False
        assert is_violated(fields, rule("payer_browser", "ends_with", "")) is False

    def test_greater_than_and_less_than(self):
        fields = fields_for(transaction_amount=150)
        assert is_violated(fields, rule("transaction_amount", "greater_than", 100)) is True
        assert is_violated(fields, rule("transaction_amount", "greater_than", 150)) is False
        assert is_violated(fields, rule("transaction_amount", "less_than", 200)) is True
        assert is_violated(fields, rule("transaction_amount", "less_than", 150)) is False

    def test_numeric_conditions_parse_text_operands(self):
        fields = fields_for(transaction_amount="150.50")
        assert is_violated(fields, rule("transaction_amount", "greater_than", "150")) is True

    def test_numeric_conditions_ignore_non_numeric_operands(self):
        """A non-numeric operand on either side never violates."""
        fields = fields_for(transaction_amount="abc")
        assert is_violated(fields, rule("transaction_amount", "greater_than", 100)) is False
        assert is_violated(fields, rule("transaction_amount", "less_than", 100)) is False

        fields = fields_for(transaction_amount=150)
        assert is_violated(fields, rule("transaction_amount", "greater_than", "lots")) is False
        assert is_violated(fields, rule("transaction_amount", "less_than", None)) is False


class TestEvaluateRules:
    """Test ordered, short-circuit rule evaluation."""

    def test_no_rules_returns_none(self):
        assert evaluate_rules(fields_for(), []) is None

    def test_no_violation_returns_none(self):
        rules = [rule("transaction_amount", "greater_than", 1000)]
        assert evaluate_rules(fields_for(transaction_amount=150), rules) is None

    def test_violation_produces_rule_verdict(self):
        """Amount 150 against greater_than 100 yields the rule reason text."""
        rules = [rule("transaction_amount", "greater_than", 100)]
        verdict = evaluate_rules(fields_for(transaction_amount=150), rules)

        assert verdict is not None
        assert verdict.is_fraud_detected is True
        assert verdict.fraud_source == FraudSource.RULE
        assert verdict.fraud_reason == "Rule violation: transaction_amount greater_than 100"
        assert verdict.fraud_score == MAX_FRAUD_SCORE

    def test_text_operands_compare_numerically(self):
        """"150" against greater_than "100" fires; against "200" it does not."""
        fields = fields_for(transaction_amount="150")

        verdict = evaluate_rules(fields, [rule("transaction_amount", "greater_than", "100")])
        assert verdict.fraud_reason == "Rule violation: transaction_amount greater_than 100"

        assert evaluate_rules(fields, [rule("transaction_amount", "greater_than", "200")]) is None

    def test_first_violated_rule_wins(self):
        """Evaluation stops at the first violation in caller order."""
        rules = [
            rule("transaction_channel", "equals", "pos"),
            rule("payer_email", "ends_with", "example.com"),
            rule("transaction_amount", "greater_than", 1),
        ]
        verdict = evaluate_rules(fields_for(), rules)

        assert verdict.fraud_reason == "Rule violation: payer_email ends_with example.com"

    def test_reason_renders_text_value(self):
        assert (
            rule_violation_reason(rule("payer_browser", "equals", "tor"))
            == "Rule violation: payer_browser equals tor"
        )

    def test_numeric_transaction_id_rule(self):
        """A rule on transaction_id sees the id as sent, not its text key."""
        fields = normalize_transaction(TransactionIn.model_validate({"transaction_id": 42}))

        verdict = evaluate_rules(fields, [rule("transaction_id", "equals", 42)])
        assert verdict.fraud_reason == "Rule violation: transaction_id equals 42"
        assert evaluate_rules(fields, [rule("transaction_id", "equals", "42")]) is None
        assert evaluate_rules(fields, [rule("transaction_id", "greater_than", 40)]) is not None
