"""
Configuration loader for the background cutout service.

Environment variables are centralized here to keep the rest of the code
focused on pixel work and to make operational tuning clear.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, validator
from pydantic_settings import BaseSettings

OUTPUT_FORMATS = {"png", "jpg", "jpeg", "webp"}


class Settings(BaseSettings):
    # Background removal tunables
    color_tolerance: float = Field(30.0, env="COLOR_TOLERANCE")
    edge_blur_radius: int = Field(2, env="EDGE_BLUR_RADIUS")
    default_output_format: str = Field("png", env="DEFAULT_OUTPUT_FORMAT")

    # API
    host: str = Field("0.0.0.0", env="HOST")
    port: int = Field(3000, env="PORT")
    request_timeout_seconds: int = Field(30, env="REQUEST_TIMEOUT_SECONDS")
    log_level: str = Field("INFO", env="LOG_LEVEL")

    # Debugging
    debug: bool = Field(False, env="DEBUG")
    debug_output_dir: Path = Field(Path("/tmp/cutout_debug"), env="DEBUG_OUTPUT_DIR")

    class Config:
        env_file = ".env"
        case_sensitive = False

    @validator("color_tolerance")
    def validate_tolerance(cls, v: float) -> float:  # noqa: B902
        if v < 0:
            raise ValueError("COLOR_TOLERANCE must be >= 0")
        return v

    @validator("edge_blur_radius")
    def validate_radius(cls, v: int) -> int:  # noqa: B902
        if v < 0:
            raise ValueError("EDGE_BLUR_RADIUS must be >= 0")
        return v

    @validator("default_output_format")
    def validate_output_format(cls, v: str) -> str:  # noqa: B902
        v = v.strip().lower()
        if v not in OUTPUT_FORMATS:
            raise ValueError("DEFAULT_OUTPUT_FORMAT must be one of png|jpg|jpeg|webp")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings to avoid reparsing env on every call."""
    return Settings()
