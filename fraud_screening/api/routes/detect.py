"""Batch fraud detection API routes.

Endpoints:
- POST /v1/detect/batch - Screen a batch of transactions
"""

import logging
from typing import Any

from fastapi import APIRouter, Request, status
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from fraud_screening.core.dependencies import RequireFraudScreen, ScreeningServiceDep
from fraud_screening.core.errors import ValidationError
from fraud_screening.schemas.screening import (
    BatchScreeningResponse,
    ErrorResponse,
    TransactionIn,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Detection"])

_transactions_adapter = TypeAdapter(list[TransactionIn])


def parse_transactions(payload: Any) -> list[TransactionIn]:
    """Validate the request body shape and parse it into transactions.

    Raises:
        ValidationError: The body is not an array, a transaction has no
            transaction_id, or a transaction or rule is malformed.
    """
    if not isinstance(payload, list):
        raise ValidationError("Request body must be an array of transactions")

    if any(not isinstance(item, dict) or not item.get("transaction_id") for item in payload):
        raise ValidationError("All transactions must have a transaction_id")

    try:
        return _transactions_adapter.validate_python(payload)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid transaction payload",
            details={
                "transactions": [
                    {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                    for err in e.errors()
                ]
            },
        ) from None


@router.post(
    "/detect/batch",
    response_model=BatchScreeningResponse,
    status_code=status.HTTP_200_OK,
    summary="Screen a batch of transactions",
    description=(
        "Check each transaction against its custom rules, fall back to pattern "
        "detection when none fire, persist the verdicts and return them keyed by "
        "transaction_id."
    ),
    responses={
        200: {"description": "Screening result per transaction_id"},
        400: {"model": ErrorResponse, "description": "Malformed request"},
        401: {"model": ErrorResponse, "description": "Authentication required"},
        403: {"model": ErrorResponse, "description": "Insufficient permissions"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
)
async def detect_batch(
    request: Request,
    current_user: RequireFraudScreen,
    service: ScreeningServiceDep,
) -> BatchScreeningResponse:
    """Screen a JSON array of transactions.

    **Authentication**: Requires a valid JWT with the `fraud:screen` permission.

    **Failure**: Any error while screening fails the whole batch with an opaque
    500; no partial results are returned.
    """
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Request body must be an array of transactions") from None

    transactions = parse_transactions(payload)
    results = await service.screen_batch(transactions, requester_id=current_user.user_id)
    return BatchScreeningResponse(root=results)
