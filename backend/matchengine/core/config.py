from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pathlib import Path

# backend/ holds the .env file
BACKEND_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(BACKEND_DIR / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "MatchEngine"

    # CORS: FRONTEND_URL plus a comma-separated list of extra origins
    FRONTEND_URL: str = "http://localhost:3000"
    ALLOWED_ORIGINS: Optional[str] = None

    # Model providers, tried in order Groq -> Gemini -> Gemini backup -> Groq backup.
    # Providers without a key are skipped.
    GROQ_API_KEY: Optional[str] = None
    GROQ_API_KEY_2: Optional[str] = None
    GROQ_MODEL: str = "llama-3.1-8b-instant"
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_API_KEY_2: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.0-flash"

    # Upper bound for a single model call (extraction, generation, one trial assessment)
    LLM_TIMEOUT_SECONDS: float = 10.0

    # "static" (bundled corpus) or "generated" (model-generated demo trials)
    TRIAL_SOURCE: str = "static"
    STATIC_TRIAL_LIMIT: int = 8

    HISTORY_MAX_ENTRIES: int = 10

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(levelname)s - %(name)s - %(funcName)s - %(message)s"


settings = Settings()
