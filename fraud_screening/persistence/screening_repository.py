"""Screening results repository using SQLAlchemy 2.0 async.

Table: fraud_detection (append-only, see db/fraud_detection_schema.sql)

Every save runs in its own session drawn from the shared session factory,
so concurrent saves from one screening group never share a connection.
Failures are returned as a :class:`SaveResult` rather than raised.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fraud_screening.domain.models import FraudVerdict, NormalizedFields
from fraud_screening.domain.rules import parse_numeric
from fraud_screening.schemas.screening import as_text

logger = logging.getLogger(__name__)

INSERT_SCREENING_RESULT = text("""
    INSERT INTO fraud_detection (
        transaction_id, transaction_date, transaction_amount,
        transaction_channel, transaction_payment_mode, payment_gateway_bank,
        payer_email, payer_mobile, payer_card_brand, payer_device,
        payer_browser, payee_id, is_fraud_predicted, fraud_source,
        fraud_reason, fraud_score, user_id
    ) VALUES (
        :transaction_id, :transaction_date, :transaction_amount,
        :transaction_channel, :transaction_payment_mode, :payment_gateway_bank,
        :payer_email, :payer_mobile, :payer_card_brand, :payer_device,
        :payer_browser, :payee_id, :is_fraud_predicted, :fraud_source,
        :fraud_reason, :fraud_score, :user_id
    )
""")


@dataclass(frozen=True)
class SaveResult:
    """Outcome of one persistence attempt."""

    transaction_id: str
    ok: bool
    error: str | None = None


class ScreeningRepository:
    """Repository for fraud_detection writes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: float | None = None,
    ):
        self.session_factory = session_factory
        self.timeout = timeout

    @staticmethod
    def _to_params(
        fields: NormalizedFields,
        verdict: FraudVerdict,
        requester_id: str,
    ) -> dict[str, Any]:
        return {
            "transaction_id": fields.key,
            "transaction_date": as_text(fields.transaction_date),
            # Amounts that do not parse are stored as NULL
            "transaction_amount": parse_numeric(fields.transaction_amount),
            "transaction_channel": as_text(fields.transaction_channel),
            "transaction_payment_mode": as_text(fields.transaction_payment_mode),
            "payment_gateway_bank": as_text(fields.payment_gateway_bank),
            "payer_email": as_text(fields.payer_email),
            "payer_mobile": as_text(fields.payer_mobile),
            "payer_card_brand": as_text(fields.payer_card_brand),
            "payer_device": as_text(fields.payer_device),
            "payer_browser": as_text(fields.payer_browser),
            "payee_id": as_text(fields.payee_id),
            "is_fraud_predicted": verdict.is_fraud_detected,
            "fraud_source": verdict.fraud_source.value,
            "fraud_reason": verdict.fraud_reason,
            "fraud_score": verdict.fraud_score,
            "user_id": requester_id,
        }

    async def _insert(self, params: dict[str, Any]) -> None:
        async with self.session_factory() as session:
            try:
                await session.execute(INSERT_SCREENING_RESULT, params)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def save(
        self,
        fields: NormalizedFields,
        verdict: FraudVerdict,
        requester_id: str,
    ) -> SaveResult:
        """Append one screened transaction and its verdict."""
        params = self._to_params(fields, verdict, requester_id)

        try:
            if self.timeout is None:
                await self._insert(params)
            else:
                async with asyncio.timeout(self.timeout):
                    await self._insert(params)
        except Exception as e:
            return SaveResult(
                transaction_id=fields.key,
                ok=False,
                error=f"{type(e).__name__}: {e}",
            )

        logger.debug(
            "Screening result persisted",
            extra={"transaction_id": fields.key},
        )
        return SaveResult(transaction_id=fields.key, ok=True)
