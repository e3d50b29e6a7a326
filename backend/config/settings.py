# backend/config/settings.py
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """
    Connection parameters for the REST data API.

    Read once from the environment (or .env at the working directory) and
    treated as read-only afterwards; the client never mutates them.
    """

    supabase_url: str = Field(
        default="",
        validation_alias=AliasChoices("supabase_url", "SUPABASE_URL"),
    )
    # anon key preferred; SUPABASE_KEY kept for older .env files
    supabase_anon_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "supabase_anon_key", "SUPABASE_ANON_KEY", "SUPABASE_KEY"
        ),
    )
    rest_path: str = "/rest/v1"
    # None = no deadline; callers wrap the await themselves
    request_timeout: Optional[float] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator("supabase_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return (v or "").strip().rstrip("/")

    @field_validator("rest_path")
    @classmethod
    def _normalize_rest_path(cls, v: str) -> str:
        v = (v or "").strip().strip("/")
        return f"/{v}" if v else ""

    @field_validator("request_timeout")
    @classmethod
    def _positive_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            return None
        return v

    @property
    def is_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)

    def rest_base(self) -> str:
        return f"{self.supabase_url}{self.rest_path}"


@lru_cache
def get_settings() -> ClientSettings:
    return ClientSettings()
