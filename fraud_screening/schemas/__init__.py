"""Schemas package for request/response models."""

from fraud_screening.schemas.screening import (
    BatchScreeningResponse,
    CustomRule,
    ErrorResponse,
    FraudSource,
    ResultEntry,
    RuleCondition,
    TransactionField,
    TransactionIn,
)

__all__ = [
    # Request
    "TransactionIn",
    "CustomRule",
    "TransactionField",
    "RuleCondition",
    # Response
    "ResultEntry",
    "FraudSource",
    "BatchScreeningResponse",
    "ErrorResponse",
]
