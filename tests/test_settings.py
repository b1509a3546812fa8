import pytest

from voice_session.config.settings import Settings, get_env, get_env_float, load_settings
from voice_session.services.errors import ConfigurationError

CREDENTIALS = ("DEEPGRAM_API_KEY", "OPENAI_API_KEY", "OPENAI_API_SECRET", "ELEVENLABS_API_KEY")


@pytest.fixture
def no_credentials(monkeypatch):
    for key in CREDENTIALS:
        monkeypatch.delenv(key, raising=False)


def test_get_env_treats_blank_as_unset(monkeypatch):
    monkeypatch.setenv("VOICE_TEST_VALUE", "   ")
    assert get_env("VOICE_TEST_VALUE", "fallback") == "fallback"
    monkeypatch.setenv("VOICE_TEST_VALUE", " set ")
    assert get_env("VOICE_TEST_VALUE", "fallback") == "set"


def test_get_env_float(monkeypatch):
    monkeypatch.setenv("VOICE_TEST_TIMEOUT", "2.5")
    assert get_env_float("VOICE_TEST_TIMEOUT", 1.0) == 2.5
    monkeypatch.delenv("VOICE_TEST_TIMEOUT")
    assert get_env_float("VOICE_TEST_TIMEOUT", 1.0) == 1.0


def test_defaults(monkeypatch):
    for key in ("COMPLETION_MODEL", "SESSION_QUEUE_SIZE", "SESSION_IDLE_TIMEOUT", "AGENTS_FILE"):
        monkeypatch.delenv(key, raising=False)

    settings = load_settings()

    assert settings.completion.model == "gpt-4-turbo-preview"
    assert settings.completion.temperature == 0.7
    assert settings.completion.max_tokens == 150
    assert settings.synthesis.model_id == "eleven_monolingual_v1"
    assert settings.session.queue_size == 8
    assert settings.session.idle_timeout == 300.0
    assert settings.agents_file is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("COMPLETION_MODEL", "gpt-4o")
    monkeypatch.setenv("SESSION_QUEUE_SIZE", "4")
    monkeypatch.setenv("TRANSCRIPTION_TIMEOUT", "3")
    monkeypatch.setenv("AGENTS_FILE", "data/agents.json")

    settings = Settings()

    assert settings.completion.model == "gpt-4o"
    assert settings.session.queue_size == 4
    assert settings.transcription.timeout == 3.0
    assert settings.agents_file == "data/agents.json"


def test_openai_secret_is_accepted(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("OPENAI_API_SECRET", "sk-secret")
    assert Settings().completion.api_key == "sk-secret"


def test_validate_passes_with_credentials():
    Settings().validate()


def test_validate_lists_every_missing_credential(no_credentials):
    settings = Settings()
    assert settings.missing_credentials() == [
        "DEEPGRAM_API_KEY",
        "OPENAI_API_KEY",
        "ELEVENLABS_API_KEY",
    ]
    with pytest.raises(ConfigurationError) as exc_info:
        settings.validate()
    assert "DEEPGRAM_API_KEY, OPENAI_API_KEY, ELEVENLABS_API_KEY" in str(exc_info.value)


def test_validate_rejects_bad_session_policy(monkeypatch):
    monkeypatch.setenv("SESSION_QUEUE_SIZE", "0")
    with pytest.raises(ConfigurationError, match="SESSION_QUEUE_SIZE"):
        Settings().validate()
