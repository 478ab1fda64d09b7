"""
Application configuration using Pydantic Settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

from multimodal.errors import SuggestionServiceUnavailable


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # OpenAI
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TIMEOUT_SECONDS: float = 20.0
    OPENAI_TEMPERATURE: float = 0.4
    WHISPER_MODEL: str = "whisper-1"

    # Uploads / working files
    ANALYSIS_UPLOAD_DIR: str = "/tmp/copilot_uploads"
    ANALYSIS_WORK_DIR: str = "/tmp/copilot_runs"
    MAX_UPLOAD_MB: int = 200
    MAX_CONCURRENT_ANALYSES: int = 2

    # External tools
    FFMPEG_TIMEOUT_SECONDS: float = 120.0
    OCR_BACKEND: str = "easyocr"  # "easyocr" or "none"
    OCR_LANGUAGES: List[str] = ["en"]

    # Feature Flags
    ENABLE_WHISPER_TRANSCRIPTION: bool = False

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


settings = Settings()


def _is_placeholder_key(api_key: str) -> bool:
    return not api_key or "your_" in api_key or api_key == "test-key"


def openai_key_configured() -> bool:
    return not _is_placeholder_key((settings.OPENAI_API_KEY or "").strip())


def require_openai_api_key() -> str:
    """Return configured OpenAI API key or raise a configuration error."""
    api_key = (settings.OPENAI_API_KEY or "").strip()
    if _is_placeholder_key(api_key):
        raise SuggestionServiceUnavailable("OPENAI_API_KEY is not configured")
    return api_key
