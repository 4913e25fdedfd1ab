from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///./mockinterview.db"

    # Fallbacks used when /api/config has not saved a value for the field
    gemini_api_key: str | None = None
    elevenlabs_api_key: str | None = None

    gemini_model: str = "gemini-2.0-flash"
    elevenlabs_base_url: str = "https://api.elevenlabs.io/v1"
    elevenlabs_voice_id: str = "21m00Tcm4TlvDq8ikWAM"
    elevenlabs_model_id: str = "eleven_multilingual_v2"
    http_timeout_seconds: float | None = None

    config_dir: str = ".secure"

    # interview pacing
    question_quota: int = 10
    settle_delay_seconds: float = 1.5

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    log_level: str = "INFO"
    log_dir: str | None = None

    # case_sensitive=False lets GEMINI_API_KEY in .env map to gemini_api_key
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", case_sensitive=False)


settings = Settings()
