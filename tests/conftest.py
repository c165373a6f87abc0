import pytest

from mock_interviewer.infrastructure.audio.speech.tts import VoiceCatalog
from mock_interviewer.interview.models import SessionConfig
from mock_interviewer.interview.testing import create_mock_session

_CONFIG_ENV = (
    "INTERVIEW_BACKEND", "INTERVIEW_API_URL", "GOOGLE_CLOUD_PROJECT",
    "GOOGLE_APPLICATION_CREDENTIALS", "INTERVIEW_CAPTURE_MODE",
    "INTERVIEW_LOG_FILE", "INTERVIEW_REPLY_TIMEOUT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    for name in _CONFIG_ENV:
        monkeypatch.delenv(name, raising=False)
    VoiceCatalog.reset()
    yield
    VoiceCatalog.reset()


@pytest.fixture
def session_config() -> SessionConfig:
    return SessionConfig(role="Backend Engineer", skills="Python, SQL", job_description="Build APIs")


@pytest.fixture
def mock_setup(session_config):
    return create_mock_session(session_config)
