"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Set test environment variables before importing the application
# Unit tests use mocks, so these are just defaults
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("AUTH0_DOMAIN", "test.local")
os.environ.setdefault("AUTH0_AUDIENCE", "https://fraud-screening-api")
os.environ.setdefault("AUTH0_ALGORITHMS", "RS256")
os.environ.setdefault("DETECTOR_BASE_URL", "http://detector.test")

from fraud_screening.core.auth import FRAUD_SCREEN, AuthenticatedUser  # noqa: E402
from fraud_screening.core.config import ScreeningConfig  # noqa: E402
from fraud_screening.domain.models import FraudVerdict  # noqa: E402
from fraud_screening.persistence.screening_repository import SaveResult  # noqa: E402
from fraud_screening.schemas.screening import FraudSource, TransactionIn  # noqa: E402

# Namespace for roles claim (matches Auth0 configuration)
ROLES_CLAIM = "https://fraud-screening-api/roles"

MOCK_SCREENER_TOKEN = {
    "sub": "auth0|test-screener",
    "email": "test-screener@fraud-platform.test",
    ROLES_CLAIM: [],
    "permissions": [FRAUD_SCREEN],
    "exp": 9999999999,
}

MOCK_NO_PERMISSION_TOKEN = {
    "sub": "auth0|test-no-permission",
    "email": "test-no-permission@fraud-platform.test",
    ROLES_CLAIM: [],
    "permissions": [],
    "exp": 9999999999,
}

CLEAN_PATTERN_VERDICT = FraudVerdict(
    is_fraud_detected=False,
    fraud_source=FraudSource.PATTERN,
    fraud_reason=None,
    fraud_score=0.12,
)


def build_transaction(transaction_id: str | int, **overrides) -> TransactionIn:
    """Build a transaction with realistic defaults."""
    data = {
        "transaction_id": transaction_id,
        "transaction_date": "2024-03-14 10:22:05",
        "transaction_amount": 150,
        "transaction_channel": "web",
        "transaction_payment_mode": "card",
        "payment_gateway_bank": "HDFC",
        "payer_email": "payer@example.com",
        "payer_mobile": "9876543210",
        "payer_card_brand": "visa",
        "payer_device": "device-01",
        "payer_browser": "chrome",
        "payee_id": "merchant-42",
    }
    data.update(overrides)
    return TransactionIn.model_validate(data)


@pytest.fixture
def sample_transaction_payload() -> dict:
    """Sample raw transaction as a caller would send it."""
    return {
        "transaction_id": "tx-001",
        "transaction_date": "2024-03-14 10:22:05",
        "transaction_amount": 150,
        "transaction_channel": "web",
        "payer_email": "payer@example.com",
        "payer_browser": "chrome",
        "payee_id": "merchant-42",
        "custom_rules": [
            {"field": "transaction_amount", "condition": "greater_than", "value": 100},
        ],
    }


@pytest.fixture
def screener() -> AuthenticatedUser:
    """Authenticated requester allowed to screen."""
    return AuthenticatedUser(user_id="auth0|test-screener", permissions=[FRAUD_SCREEN])


@pytest.fixture
def screening_config() -> ScreeningConfig:
    return ScreeningConfig(max_concurrency=5, isolate_detector_failures=False)


@pytest.fixture
def mock_detector():
    """Pattern detector answering 'not fraud' for every transaction."""
    detector = AsyncMock()
    detector.detect = AsyncMock(return_value=CLEAN_PATTERN_VERDICT)
    return detector


@pytest.fixture
def mock_repository():
    """Repository whose saves always succeed."""
    repository = AsyncMock()
    repository.save = AsyncMock(
        side_effect=lambda fields, verdict, requester_id: SaveResult(
            transaction_id=fields.key, ok=True
        )
    )
    return repository


@pytest.fixture
def mock_session():
    """Mock async database session."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def mock_session_factory(mock_session):
    """Session factory yielding mock_session as an async context manager."""
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=mock_session)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory
