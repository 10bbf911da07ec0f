import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app


@pytest.fixture
def settings(tmp_path):
    return Settings(
        openai_api_key="test-key",
        asr_provider="stub",
        asr_model="whisper-1",
        asr_timeout_s=5.0,
        upload_dir=str(tmp_path / "uploads"),
        host="127.0.0.1",
        port=8080,
        log_level="DEBUG",
    )


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c
