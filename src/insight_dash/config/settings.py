from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings managed via Pydantic Settings.
    Reads variables from environment and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # --- Application Meta ---
    APP_NAME: str = "Insight Dash"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = True
    LOG_FILE_NAME: str = "app.log"
    LOG_MAX_BYTES: int = 5_000_000
    LOG_BACKUP_COUNT: int = 3

    # --- AI/LLM Configuration ---
    # Optional so the API starts without a key; the credential store can supply one later
    LLM_API_KEY: Optional[str] = Field(None, description="API key for the hosted chat-completion service")
    LLM_BASE_URL: Optional[str] = None
    DEFAULT_MODEL: str = "llama-3.3-70b-versatile"
    TEMPERATURE: float = 0.7
    MAX_TOKENS: int = 2048
    CREDENTIALS_FILE: str = ".insight_dash/credentials.json"

    # --- Server Configuration ---
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # --- Data Ingestion Limits ---
    MAX_UPLOAD_SIZE_MB: int = 10

    # --- Pipeline Limits ---
    MAX_CHART_POINTS: int = 500
    KPI_LIMIT: int = 4
    PREVIEW_ROWS: int = 5
    AI_SAMPLE_ROWS: int = 10
    DEFAULT_ENTRY_COUNT: int = 50
    ENTRY_COUNT_CHOICES: List[int] = [20, 50, 100, 250, 500, 1000]

    @field_validator("LLM_API_KEY")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty key the same as a missing one."""
        if not v:
            return None
        return v.strip()

    @field_validator("AI_SAMPLE_ROWS")
    @classmethod
    def validate_sample_rows(cls, v: int) -> int:
        # The collaborator gets a bounded sample of 5-10 rows
        return min(max(v, 5), 10)


settings = Settings()
