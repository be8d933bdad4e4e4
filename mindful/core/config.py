from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_ENV: str = "dev"
    API_VERSION: str = "v1.0.0"

    # gemini | huggingface
    CHAT_PROVIDER: str = "gemini"

    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"

    # Route Gemini calls through our own /api/gemini/generate so the key stays server-side
    USE_PROXY: bool = False
    PROXY_URL: str = "http://localhost:8000/api/gemini/generate"

    HF_API_KEY: str = ""
    HF_MODEL: str = "mistralai/Mistral-7B-Instruct-v0.3"
    HF_BASE_URL: str = "https://api-inference.huggingface.co"

    TEMPERATURE: float = 0.7
    TOP_P: float = 0.95
    TOP_K: int = 40
    MAX_OUTPUT_TOKENS: int = 500
    REPETITION_PENALTY: float = 1.15
    SAFETY_THRESHOLD: str = "BLOCK_MEDIUM_AND_ABOVE"

    # None disables the bound entirely
    REQUEST_TIMEOUT_SECONDS: float | None = None

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
