from __future__ import annotations

import os
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

load_dotenv()


class Settings(BaseModel):
    TICK_INTERVAL_SECONDS: float = Field(default=1.0, gt=0, description="Emitter period")
    EMITTER_AUTOSTART: bool = Field(default=True)
    STOP_ON_CALLBACK_ERROR: bool = Field(default=False)
    MAX_SUBSCRIBERS: int = Field(default=1000, ge=0)
    API_TOKEN: str = Field(default="dev_token")  # simple bearer for writes
    API_KEYS: str = Field(default="", description="comma-separated API keys")
    CORS_ALLOW_ORIGINS: str = Field(default="*")
    LOG_LEVEL: str = Field(default="INFO")


def _load_settings(existing: Settings | None = None) -> Settings:
    values: dict[str, Any] = {}
    for name, field in Settings.model_fields.items():
        env_value = os.getenv(name)
        if env_value is None:
            if existing is not None and hasattr(existing, name):
                values[name] = getattr(existing, name)
                continue
            values[name] = field.get_default(call_default_factory=True)
        else:
            values[name] = env_value

    try:
        return Settings(**values)
    except ValidationError as exc:
        invalid = sorted({str(error["loc"][0]) for error in exc.errors() if error.get("loc")})
        if invalid:
            raise RuntimeError(
                f"Invalid environment variables: {', '.join(invalid)}"
            ) from exc
        raise


settings = _load_settings()


def reload_settings() -> Settings:
    global settings
    fresh = _load_settings(settings)
    settings.__dict__.update(fresh.__dict__)
    return settings
