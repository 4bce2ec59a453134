"""Pydantic request/response schemas for the PlantID API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ImageTag(BaseModel):
    """A single classification tag with confidence score."""

    label: str
    confidence: float = Field(description="Model score for this label, expected in 0.0-1.0")


class ClassifyImageResponse(BaseModel):
    """Response for image classification endpoint."""

    tags: list[ImageTag]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    gpu: bool
    models_loaded: list[str]
    concurrent_requests: int
    queue_depth: int


class InputSpecInfo(BaseModel):
    """Input tensor declared by the loaded model."""

    width: int
    height: int
    channels: int
    element_type: str


class ModelInfo(BaseModel):
    """Information about the configured model."""

    name: str
    status: str = Field(description="Model status: 'active' or 'unavailable'")
    input: InputSpecInfo | None = None
    num_labels: int | None = None


class ModelsResponse(BaseModel):
    """Response for the models listing endpoint."""

    models: list[ModelInfo]


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
