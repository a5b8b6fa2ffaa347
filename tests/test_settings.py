import pytest

from convo.core import settings as settings_module
from convo.core.settings import (
    DEFAULT_BASE_URL,
    DEFAULT_MAX_HISTORY_LENGTH,
    DEFAULT_TIMEOUT_SEC,
    get_settings,
)

ENV_VARS = [
    "OPENAI_BASE_URL",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "OPENAI_FALLBACK_MODEL",
    "OPENAI_TIMEOUT_SEC",
    "MAX_HISTORY_LENGTH",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.setattr(settings_module, "load_dotenv", lambda: None)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = get_settings()

    assert settings.base_url == DEFAULT_BASE_URL
    assert settings.api_key is None
    assert settings.timeout_sec == DEFAULT_TIMEOUT_SEC
    assert settings.max_history_length == DEFAULT_MAX_HISTORY_LENGTH


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("OPENAI_BASE_URL", "https://api.example.com/v1/")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-abc")
    monkeypatch.setenv("OPENAI_MODEL", "  my-model  ")
    monkeypatch.setenv("OPENAI_TIMEOUT_SEC", "30")
    monkeypatch.setenv("MAX_HISTORY_LENGTH", "50")

    settings = get_settings()

    assert settings.base_url == "https://api.example.com/v1"
    assert settings.api_key == "sk-abc"
    assert settings.model == "my-model"
    assert settings.timeout_sec == 30
    assert settings.max_history_length == 50


def test_blank_model_means_none(monkeypatch):
    monkeypatch.setenv("OPENAI_MODEL", "   ")

    assert get_settings().model is None


def test_non_positive_history_length_is_kept(monkeypatch):
    monkeypatch.setenv("MAX_HISTORY_LENGTH", "-1")

    assert get_settings().max_history_length == -1


def test_invalid_history_length_raises(monkeypatch):
    monkeypatch.setenv("MAX_HISTORY_LENGTH", "lots")

    with pytest.raises(ValueError):
        get_settings()
