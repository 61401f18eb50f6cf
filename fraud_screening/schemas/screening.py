"""Batch screening request/response schemas.

The request body is a JSON array of transactions, each optionally carrying
an ordered list of custom rules. The response maps every transaction_id to
its screening result.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator

# JSON scalar as sent by callers; descriptive fields keep their original type
FieldValue = str | int | float | bool | None
TransactionId = str | int | float | bool


def as_text(value: Any) -> str | None:
    """Render a field value as text, None when the field is missing."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class TransactionField(str, Enum):
    """Transaction fields a custom rule may reference."""

    TRANSACTION_ID = "transaction_id"
    TRANSACTION_DATE = "transaction_date"
    TRANSACTION_AMOUNT = "transaction_amount"
    TRANSACTION_CHANNEL = "transaction_channel"
    TRANSACTION_PAYMENT_MODE = "transaction_payment_mode"
    PAYMENT_GATEWAY_BANK = "payment_gateway_bank"
    PAYER_EMAIL = "payer_email"
    PAYER_MOBILE = "payer_mobile"
    PAYER_CARD_BRAND = "payer_card_brand"
    PAYER_DEVICE = "payer_device"
    PAYER_BROWSER = "payer_browser"
    PAYEE_ID = "payee_id"


class RuleCondition(str, Enum):
    """Comparison applied by a custom rule."""

    EQUALS = "equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"


class FraudSource(str, Enum):
    """Which tier produced a verdict."""

    RULE = "rule"
    PATTERN = "pattern"
    ERROR = "error"


class CustomRule(BaseModel):
    """Caller-supplied rule checked before pattern detection.

    Extra keys (rule names, ids) are kept so the rule can be echoed back as sent.
    """

    field: TransactionField
    condition: RuleCondition
    value: FieldValue = Field(..., description="Comparison operand")

    model_config = ConfigDict(extra="allow")


class TransactionIn(BaseModel):
    """One candidate transaction in a screening batch."""

    transaction_id: TransactionId = Field(..., description="Unique key within the batch")
    transaction_date: FieldValue = None
    transaction_amount: FieldValue = None
    transaction_channel: FieldValue = None
    transaction_payment_mode: FieldValue = None
    payment_gateway_bank: FieldValue = None
    payer_email: FieldValue = None
    payer_mobile: FieldValue = None
    payer_card_brand: FieldValue = None
    payer_device: FieldValue = None
    payer_browser: FieldValue = None
    payee_id: FieldValue = None
    custom_rules: list[CustomRule] | None = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("transaction_id")
    @classmethod
    def require_transaction_id(cls, v: TransactionId) -> TransactionId:
        if isinstance(v, str) and not v:
            raise ValueError("transaction_id must not be empty")
        return v

    @property
    def key(self) -> str:
        """Text form of transaction_id, used to key results (42 becomes "42")."""
        return as_text(self.transaction_id)


class ResultEntry(BaseModel):
    """Screening result for one transaction."""

    is_fraud: bool
    fraud_source: FraudSource
    fraud_reason: str | None = None
    fraud_score: float
    custom_rules: list[dict[str, Any]] | None = Field(
        None, description="Custom rules echoed back as submitted"
    )


class BatchScreeningResponse(RootModel[dict[str, ResultEntry]]):
    """Mapping of transaction_id to its screening result."""


class ErrorResponse(BaseModel):
    """Error response body."""

    detail: str
    errors: dict[str, Any] | None = None
