"""
Unit tests for AppConfig environment variable loading.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from voicebot.config import AppConfig

_ENV_VARS = [
    "GENAI_API_KEY", "GENAI_BASE_URL", "GENAI_MODEL", "GENAI_TIMEOUT",
    "UPSTREAM_MAX_ATTEMPTS", "UPSTREAM_RETRY_DELAY", "RATE_LIMIT_WINDOW",
    "RATE_LIMIT_MAX_REQUESTS", "SERVER_HOST", "PORT", "CORS_ORIGINS",
    "VOICEBOT_API_URL", "SPEECH_LOCALE", "CLIENT_TIMEOUT", "LISTEN_TIMEOUT",
    "SPEECH_RATE", "SPEECH_PITCH", "SPEECH_VOLUME", "BOT_NAME", "BOT_PERSONA",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate tests from the developer's environment."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestAppConfig:
    """Tests for AppConfig.from_env()."""

    def test_default_values(self):
        """Config should have sensible defaults without env vars."""
        config = AppConfig()
        assert config.rate_limit.window_seconds == 60.0
        assert config.rate_limit.max_requests == 10
        assert config.upstream.max_attempts == 3
        assert config.upstream.retry_delay == 2.0
        assert config.upstream.model == "gemini-1.5-flash"
        assert config.server.port == 5000
        assert config.server.max_question_length == 1000
        assert config.client.locale == "en-US"
        assert config.client.voice.rate == 0.9

    def test_from_env_upstream(self, monkeypatch):
        """Upstream config should load from environment variables."""
        monkeypatch.setenv("GENAI_API_KEY", "test-key-123")
        monkeypatch.setenv("GENAI_MODEL", "gemini-2.0-flash")
        monkeypatch.setenv("UPSTREAM_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("UPSTREAM_RETRY_DELAY", "0.5")
        config = AppConfig.from_env()
        assert config.upstream.api_key == "test-key-123"
        assert config.upstream.model == "gemini-2.0-flash"
        assert config.upstream.max_attempts == 5
        assert config.upstream.retry_delay == 0.5

    def test_from_env_server(self, monkeypatch):
        """Server config should load from environment variables."""
        monkeypatch.setenv("SERVER_HOST", "127.0.0.1")
        monkeypatch.setenv("PORT", "9999")
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
        config = AppConfig.from_env()
        assert config.server.host == "127.0.0.1"
        assert config.server.port == 9999
        assert config.server.cors_origins == ["https://a.example", "https://b.example"]

    def test_from_env_rate_limit(self, monkeypatch):
        """Rate limit window and allowance should be configurable."""
        monkeypatch.setenv("RATE_LIMIT_WINDOW", "30")
        monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "3")
        config = AppConfig.from_env()
        assert config.rate_limit.window_seconds == 30.0
        assert config.rate_limit.max_requests == 3

    def test_from_env_client(self, monkeypatch):
        """Client and voice config should load from environment variables."""
        monkeypatch.setenv("VOICEBOT_API_URL", "https://bot.example")
        monkeypatch.setenv("SPEECH_LOCALE", "en-GB")
        monkeypatch.setenv("SPEECH_RATE", "1.2")
        monkeypatch.setenv("BOT_NAME", "Ada")
        config = AppConfig.from_env()
        assert config.client.api_url == "https://bot.example"
        assert config.client.locale == "en-GB"
        assert config.client.voice.rate == 1.2
        assert config.persona.name == "Ada"

    def test_from_env_defaults_without_env(self):
        """Without env vars set, from_env should return defaults."""
        config = AppConfig.from_env()
        assert config.upstream.api_key == ""
        assert config.server.host == "0.0.0.0"
        assert config.client.api_url == "http://localhost:5000"
