"""
Centralized configuration for the Voice Bot server and client.
All settings loaded from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

MAX_QUESTION_LENGTH = 1000


@dataclass
class UpstreamConfig:
    """Generative model API configuration."""
    api_key: str = ""
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    model: str = "gemini-1.5-flash"
    timeout: float = 30.0
    max_attempts: int = 3  # initial call + retries on quota errors
    retry_delay: float = 2.0  # seconds between attempts


@dataclass
class RateLimitConfig:
    """Per-caller fixed-window admission control."""
    window_seconds: float = 60.0
    max_requests: int = 10


@dataclass
class ServerConfig:
    """HTTP API server configuration."""
    host: str = "0.0.0.0"
    port: int = 5000
    service_name: str = "Voice Bot API"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    max_question_length: int = MAX_QUESTION_LENGTH


@dataclass
class VoiceSettings:
    """Speech synthesis parameters."""
    rate: float = 0.9
    pitch: float = 1.0
    volume: float = 1.0


@dataclass
class ClientConfig:
    """Voice client configuration."""
    api_url: str = "http://localhost:5000"
    timeout: float = 30.0
    max_question_length: int = MAX_QUESTION_LENGTH
    locale: str = "en-US"
    listen_timeout: float = 30.0  # seconds before a capture gives up with no-speech
    voice: VoiceSettings = field(default_factory=VoiceSettings)


@dataclass
class PersonaConfig:
    """Who the bot speaks as."""
    name: str = "Vishal"
    description: str = ""  # empty = built-in persona text


@dataclass
class AppConfig:
    """Top-level application configuration."""
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    persona: PersonaConfig = field(default_factory=PersonaConfig)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load configuration from environment variables (including .env file)."""
        load_dotenv()
        config = cls()

        # Upstream model
        config.upstream.api_key = os.getenv("GENAI_API_KEY", config.upstream.api_key)
        config.upstream.base_url = os.getenv("GENAI_BASE_URL", config.upstream.base_url)
        config.upstream.model = os.getenv("GENAI_MODEL", config.upstream.model)
        timeout = os.getenv("GENAI_TIMEOUT")
        if timeout:
            config.upstream.timeout = float(timeout)
        attempts = os.getenv("UPSTREAM_MAX_ATTEMPTS")
        if attempts:
            config.upstream.max_attempts = int(attempts)
        delay = os.getenv("UPSTREAM_RETRY_DELAY")
        if delay:
            config.upstream.retry_delay = float(delay)

        # Rate limiting
        window = os.getenv("RATE_LIMIT_WINDOW")
        if window:
            config.rate_limit.window_seconds = float(window)
        max_requests = os.getenv("RATE_LIMIT_MAX_REQUESTS")
        if max_requests:
            config.rate_limit.max_requests = int(max_requests)

        # Server config
        config.server.host = os.getenv("SERVER_HOST", config.server.host)
        port = os.getenv("PORT")
        if port:
            config.server.port = int(port)
        origins = os.getenv("CORS_ORIGINS")
        if origins:
            config.server.cors_origins = [o.strip() for o in origins.split(",") if o.strip()]

        # Client config
        config.client.api_url = os.getenv("VOICEBOT_API_URL", config.client.api_url)
        config.client.locale = os.getenv("SPEECH_LOCALE", config.client.locale)
        client_timeout = os.getenv("CLIENT_TIMEOUT")
        if client_timeout:
            config.client.timeout = float(client_timeout)
        listen_timeout = os.getenv("LISTEN_TIMEOUT")
        if listen_timeout:
            config.client.listen_timeout = float(listen_timeout)

        # Voice
        rate = os.getenv("SPEECH_RATE")
        if rate:
            config.client.voice.rate = float(rate)
        pitch = os.getenv("SPEECH_PITCH")
        if pitch:
            config.client.voice.pitch = float(pitch)
        volume = os.getenv("SPEECH_VOLUME")
        if volume:
            config.client.voice.volume = float(volume)

        # Persona
        config.persona.name = os.getenv("BOT_NAME", config.persona.name)
        config.persona.description = os.getenv("BOT_PERSONA", config.persona.description)

        return config
