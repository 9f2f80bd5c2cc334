from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="MAKEUP_", env_file=".env", extra="ignore")

    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    max_upload_bytes: int = 16 * 1024 * 1024

    inpaint_patch_size: int = Field(default=4, ge=1)
    brow_margin: int = Field(default=8, ge=0)
    brow_mask_tolerance: int = Field(default=4, ge=0, le=254)
    blush_smooth_level: int = Field(default=8, ge=0)


@lru_cache
def get_settings() -> Settings:
    return Settings()
