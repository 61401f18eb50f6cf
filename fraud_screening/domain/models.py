"""Screening domain models: the normalized transaction view and the verdict."""

from pydantic import BaseModel, ConfigDict

from fraud_screening.schemas.screening import (
    FieldValue,
    FraudSource,
    ResultEntry,
    TransactionId,
    TransactionIn,
    as_text,
)

MAX_FRAUD_SCORE = 1.0


class NormalizedFields(BaseModel):
    """Fixed twelve-field view of a transaction.

    This is the only view of a transaction that rule evaluation and
    pattern detection read.
    """

    transaction_id: TransactionId
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

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def key(self) -> str:
        return as_text(self.transaction_id)


class FraudVerdict(BaseModel):
    """Fraud determination for one transaction, immutable once built.

    Rule verdicts always score MAX_FRAUD_SCORE; pattern verdicts carry the
    detection engine's score as reported.
    """

    is_fraud_detected: bool
    fraud_source: FraudSource
    fraud_reason: str | None = None
    fraud_score: float

    model_config = ConfigDict(frozen=True)

    def to_result_entry(self, transaction: TransactionIn) -> ResultEntry:
        """Build the response entry, echoing the transaction's custom rules."""
        custom_rules = None
        if transaction.custom_rules is not None:
            custom_rules = [rule.model_dump(mode="json") for rule in transaction.custom_rules]
        return ResultEntry(
            is_fraud=self.is_fraud_detected,
            fraud_source=self.fraud_source,
            fraud_reason=self.fraud_reason,
            fraud_score=self.fraud_score,
            custom_rules=custom_rules,
        )


def normalize_transaction(transaction: TransactionIn) -> NormalizedFields:
    """Extract the normalized field set from a raw transaction."""
    return NormalizedFields(
        transaction_id=transaction.transaction_id,
        transaction_date=transaction.transaction_date,
        transaction_amount=transaction.transaction_amount,
        transaction_channel=transaction.transaction_channel,
        transaction_payment_mode=transaction.transaction_payment_mode,
        payment_gateway_bank=transaction.payment_gateway_bank,
        payer_email=transaction.payer_email,
        payer_mobile=transaction.payer_mobile,
        payer_card_brand=transaction.payer_card_brand,
        payer_device=transaction.payer_device,
        payer_browser=transaction.payer_browser,
        payee_id=transaction.payee_id,
    )
