"""Environment-based configuration for PlantID."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from PLANTID_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PLANTID_",
        case_sensitive=False,
        protected_namespaces=(),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8082

    # Authentication (None = disabled)
    api_key: str | None = None

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # Model resources
    models_dir: str = "models"
    model_file: str = "inat_plant.onnx"
    labels_file: str = "aiy_plants_V1_labelmap.csv"
    model_repo_id: str | None = None

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)
    gpu_mem_limit: int = Field(default=2_147_483_648, ge=0)

    # Classification
    top_k: int = Field(default=5, ge=1, le=100)

    # Queueing
    queue_timeout: float = Field(default=5.0, gt=0)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=209_715_200, ge=1)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
