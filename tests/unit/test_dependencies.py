"""Unit tests for dependency wiring."""

from unittest.mock import MagicMock

from fraud_screening.core.config import Settings
from fraud_screening.core.dependencies import get_detector, get_screening_service
from fraud_screening.persistence.screening_repository import ScreeningRepository


class TestDependencies:
    """Test how the screening service is assembled."""

    def test_get_detector_reads_app_state(self):
        request = MagicMock()
        request.app.state.detector = "detector"
        assert get_detector(request) == "detector"

    def test_service_gets_repository_and_config(self, mock_detector, mock_session_factory):
        settings = Settings()

        service = get_screening_service(mock_detector, mock_session_factory, settings)

        assert service.detector is mock_detector
        assert isinstance(service.repository, ScreeningRepository)
        assert service.repository.session_factory is mock_session_factory
        assert service.repository.timeout == settings.screening.persist_timeout
        assert service.config is settings.screening

    def test_persistence_can_be_disabled(self, mock_detector, mock_session_factory, monkeypatch):
        monkeypatch.setenv("SCREENING_PERSIST_RESULTS", "false")

        service = get_screening_service(mock_detector, mock_session_factory, Settings())

        assert service.repository is None
