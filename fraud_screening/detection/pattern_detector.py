"""Client for the pattern-detection engine.

The engine is consulted only when no custom rule fires. It receives the
normalized transaction fields together with the caller's rules (for
context) and answers with a verdict. Any failure to obtain a verdict is
raised as :class:`DetectionError`; callers decide whether that aborts the
batch.
"""

import logging
from collections.abc import Sequence
from typing import Any, Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from fraud_screening.core.config import DetectorConfig
from fraud_screening.core.errors import DetectionError
from fraud_screening.domain.models import FraudVerdict, NormalizedFields
from fraud_screening.schemas.screening import CustomRule, FraudSource

logger = logging.getLogger(__name__)


class FraudDetector(Protocol):
    """Fallback fraud detection capability."""

    async def detect(
        self,
        fields: NormalizedFields,
        rules: Sequence[CustomRule],
    ) -> FraudVerdict: ...


class HttpPatternDetector:
    """Pattern detector backed by the remote detection engine over HTTP."""

    def __init__(self, config: DetectorConfig, client: httpx.AsyncClient | None = None):
        self.config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout),
            headers=self._auth_headers(config),
        )

    @staticmethod
    def _auth_headers(config: DetectorConfig) -> dict[str, str]:
        api_key = config.api_key.get_secret_value()
        return {"X-API-Key": api_key} if api_key else {}

    async def detect(
        self,
        fields: NormalizedFields,
        rules: Sequence[CustomRule],
    ) -> FraudVerdict:
        """Ask the engine for a verdict on one transaction."""
        payload = {
            "transaction": fields.model_dump(mode="json"),
            "custom_rules": [rule.model_dump(mode="json") for rule in rules],
        }

        try:
            response = await self._client.post(self.config.detect_path, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            raise DetectionError(
                "Pattern detection timed out",
                details={"transaction_id": fields.key, "error": str(e)},
            ) from e
        except httpx.HTTPStatusError as e:
            raise DetectionError(
                "Pattern detection engine returned an error",
                details={
                    "transaction_id": fields.key,
                    "status_code": e.response.status_code,
                },
            ) from e
        except httpx.HTTPError as e:
            raise DetectionError(
                "Pattern detection engine unreachable",
                details={"transaction_id": fields.key, "error": str(e)},
            ) from e
        except ValueError as e:
            raise DetectionError(
                "Pattern detection engine returned invalid JSON",
                details={"transaction_id": fields.key},
            ) from e

        return self._parse_verdict(fields.key, body)

    @staticmethod
    def _parse_verdict(transaction_id: str, body: Any) -> FraudVerdict:
        if not isinstance(body, dict):
            raise DetectionError(
                "Pattern detection engine returned an unexpected body",
                details={"transaction_id": transaction_id},
            )

        source = body.get("fraud_source")
        if source not in (None, FraudSource.PATTERN.value):
            logger.warning(
                "Detection engine reported a non-pattern source, overriding",
                extra={"transaction_id": transaction_id, "fraud_source": source},
            )

        try:
            return FraudVerdict.model_validate({**body, "fraud_source": FraudSource.PATTERN})
        except PydanticValidationError as e:
            raise DetectionError(
                "Pattern detection engine returned an invalid verdict",
                details={"transaction_id": transaction_id, "errors": e.errors()},
            ) from e

    async def aclose(self) -> None:
        await self._client.aclose()
