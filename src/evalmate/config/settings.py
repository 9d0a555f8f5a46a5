"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]

DEFAULT_PREFERRED_MODELS = [
    "llama-3.1-8b-instant",
    "llama-3.1-70b-versatile",
    "mixtral-8x7b-32768",
    "llama-4-scout-17b-16e-instruct",
]
DEFAULT_PREFERRED_FAMILIES = ["instant", "versatile", "llama-3", "llama-4", "mixtral", "gemma"]
DEFAULT_EXCLUDED_MODEL_MARKERS = ["whisper", "guard", "tts", "playai"]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "evalmate"
    log_level: str = "INFO"
    database_url: str = ""

    auth_url: str = ""
    auth_api_key: str = ""
    auth_timeout_s: float = Field(default=5.0, ge=0.1)

    llm_base_url: str = "https://api.groq.com/openai/v1"
    llm_api_key: str = ""
    llm_timeout_s: float = Field(default=25.0, ge=0.5)
    llm_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    llm_max_tokens: int = Field(default=2000, ge=1)
    llm_insights_max_tokens: int = Field(default=3000, ge=1)
    llm_preferred_models: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PREFERRED_MODELS)
    )
    llm_preferred_families: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PREFERRED_FAMILIES)
    )
    llm_excluded_model_markers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_MODEL_MARKERS)
    )
    premium_insights_enabled: bool = True

    max_code_chars: int = Field(default=10_000, ge=1)
    max_payload_chars: int = Field(default=500_000, ge=1)

    payment_base_url: str = "https://api.razorpay.com/v1"
    payment_key_id: str = ""
    payment_key_secret: str = ""
    payment_webhook_secret: str = ""
    payment_currency: str = "INR"
    report_price: int = Field(default=99_900, ge=1)
    payment_timeout_s: float = Field(default=10.0, ge=0.5)

    model_config = SettingsConfigDict(
        env_prefix="EVALMATE_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_database_url(self) -> str:
        return self.database_url or os.getenv("DATABASE_URL", "")

    def resolved_llm_api_key(self) -> str:
        return self.llm_api_key or os.getenv("GROQ_API_KEY", "")

    def resolved_auth_url(self) -> str:
        return self.auth_url or os.getenv("SUPABASE_URL", "")

    def resolved_auth_api_key(self) -> str:
        return self.auth_api_key or os.getenv("SUPABASE_ANON_KEY", "")

    def resolved_payment_key_id(self) -> str:
        return self.payment_key_id or os.getenv("RAZORPAY_KEY_ID", "")

    def resolved_payment_key_secret(self) -> str:
        return self.payment_key_secret or os.getenv("RAZORPAY_KEY_SECRET", "")

    def resolved_payment_webhook_secret(self) -> str:
        return self.payment_webhook_secret or os.getenv("RAZORPAY_WEBHOOK_SECRET", "")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
