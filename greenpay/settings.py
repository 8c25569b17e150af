import os
from dataclasses import dataclass

from .rate_limit import LimitConfig


def _get(name: str, default: str) -> str:
    return os.getenv(name, default)


def _get_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _get_positive_int(name: str, default: int) -> int:
    value = _get_int(name, default)
    return value if value > 0 else default


@dataclass
class Settings:
    port: int = _get_int("PORT", 3000)
    service_name: str = _get("SERVICE_NAME", "greenpay-assistant")
    version: str = _get("VERSION", "0.1.0")
    git_sha: str = _get("GIT_SHA", "dev")
    max_chars: int = _get_int("MAX_CHARS", 4000)
    max_messages: int = _get_int("MAX_MESSAGES", 20)
    max_body_bytes: int = _get_int("MAX_BODY_BYTES", 200000)
    rate_limit_per_minute: int = _get_positive_int("RATE_LIMIT_PER_MINUTE", 10)
    rate_limit_per_day: int = _get_positive_int("RATE_LIMIT_PER_DAY", 5)
    rate_limit_max_identities: int = _get_positive_int("RATE_LIMIT_MAX_IDENTITIES", 10000)
    model_backend: str = _get("MODEL_BACKEND", "mock")
    gemini_api_key: str = _get("GOOGLE_AI_API_KEY", "")
    gemini_model: str = _get("GEMINI_MODEL", "gemini-1.5-flash")

    def limit_config(self) -> LimitConfig:
        return LimitConfig(
            minute_limit=self.rate_limit_per_minute,
            daily_limit=self.rate_limit_per_day,
            max_identities=self.rate_limit_max_identities,
        )


def get_settings() -> Settings:
    return Settings()
