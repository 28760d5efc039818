"""Application configuration and environment variables"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Gemini API (content, quiz, sandbox, teaching evaluator, chat)
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.5-flash"

    # Deepgram (Aura TTS + Nova alignment)
    DEEPGRAM_API_KEY: Optional[str] = None
    DEEPGRAM_TTS_MODEL: str = "aura-asteria-en"
    DEEPGRAM_KID_TTS_MODEL: str = "aura-luna-en"
    DEEPGRAM_STT_MODEL: str = "nova-2"
    DEEPGRAM_TTS_MAX_CHARS: int = 1900

    # Image search (SerpAPI, optional)
    SERPAPI_KEY: Optional[str] = None
    FALLBACK_IMAGE_URL: str = "https://source.unsplash.com/800x600/?education"
    IMAGE_RESOLVER_WORKERS: int = 8

    # External requests
    GENERATION_TIMEOUT_SECONDS: int = 60

    # Playback
    MANUAL_OVERRIDE_SECONDS: float = 5.0

    # Response caches
    CACHE_KEY_PREFIX_CHARS: int = 50
    CACHE_MAX_ENTRIES: int = 128

    # Live sessions
    SESSION_LIMIT: int = 500

    # Quiz
    QUIZ_PASS_PERCENT: int = 75
    MIN_QUIZ_TRANSCRIPT_CHARS: int = 50

    # Teaching challenge
    CHALLENGE_MAX_UNDERSTANDING: int = 7
    CHALLENGE_MAX_RETRIES: int = 3
    MIN_EXPLANATION_CHARS: int = 5

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
