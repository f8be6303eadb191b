from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    APP_NAME: str = "Curriculum Tutor API"
    APP_VERSION: str = "0.3.0"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "*"

    # Gemini: API key mode (local/dev) or Vertex AI mode (GOOGLE_CLOUD_PROJECT)
    GOOGLE_API_KEY: str = ""
    GOOGLE_CLOUD_PROJECT: str = ""
    GOOGLE_CLOUD_LOCATION: str = "us-central1"
    GEMINI_MODEL: str = "gemini-2.5-flash"

    # ElevenLabs conversational agent
    ELEVENLABS_API_KEY: str = ""
    ELEVENLABS_API_URL: str = "https://api.elevenlabs.io"
    ELEVENLABS_VOICE_ID: str = "cgSgspJ2msm6clMCkdW9"
    ELEVENLABS_TTS_MODEL: str = "eleven_multilingual_v2"
    ELEVENLABS_AGENT_LLM: str = "gemini-2.5-flash"
    AGENT_NAME: str = "Curriculum Tutor AI"
    AGENT_LANGUAGE: str = "en"
    AGENT_CACHE_PATH: str = ".elevenlabs-agent.json"

    # Learner sessions
    SESSION_TTL_SECONDS: int = 60 * 60
    SESSION_MAX: int = 10_000
    MAX_UPLOAD_MB: int = 25

    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
