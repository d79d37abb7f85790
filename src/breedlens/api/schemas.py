"""Pydantic request/response schemas for the BreedLens API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ClassifyImageResponse(BaseModel):
    """Response for the image classification endpoint."""

    status: str = Field(description="Outcome: 'succeeded', 'failed', or 'not_attempted'")
    label: str | None = None
    confidence: float | None = Field(default=None, description="Raw model score for the label")
    detail: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    gpu: bool
    classifier_loaded: bool
    concurrent_requests: int
    queue_depth: int


class ModelResponse(BaseModel):
    """Information about the loaded model."""

    model_config = ConfigDict(protected_namespaces=())

    model_path: str
    input_shape: list[int]
    num_labels: int
    thread_count: int
    providers: list[str]


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
