"""Environment-based configuration for BreedLens."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from BREEDLENS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BREEDLENS_",
        case_sensitive=False,
        protected_namespaces=(),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8082
    log_level: str = "INFO"

    # Authentication (None = disabled)
    api_key: str | None = None

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # Model resources
    model_path: str = "model.onnx"
    labels_path: str = "labels.txt"
    model_repo_id: str | None = None
    models_dir: str = "models"

    # Model input geometry
    input_width: int = Field(default=224, ge=1)
    input_height: int = Field(default=224, ge=1)
    resample_filter: Literal["nearest", "bilinear", "bicubic", "lanczos"] = "bilinear"

    # ONNX Runtime threading
    thread_count: int = Field(default=1, ge=1)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=209_715_200, ge=1)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
