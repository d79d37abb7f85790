"""API route definitions."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, HTTPException, UploadFile, status

from breedlens.api.dependencies import (
    get_inference_pool,
    get_optional_classifier,
    get_settings_from_request,
    require_classifier,
    verify_api_key,
)
from breedlens.api.schemas import (
    ClassifyImageResponse,
    ErrorResponse,
    HealthResponse,
    ModelResponse,
)
from breedlens.config import Settings
from breedlens.errors import ImageBufferError
from breedlens.ml.image import RawImage
from breedlens.ml.image_classifier import ClassificationOutcome, ImageClassifier
from breedlens.ml.inference import InferencePool

if TYPE_CHECKING:
    from breedlens.ml.ranking import Classification

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])

SettingsDep = Annotated[Settings, Depends(get_settings_from_request)]
PoolDep = Annotated[InferencePool, Depends(get_inference_pool)]
ClassifierDep = Annotated[ImageClassifier, Depends(require_classifier)]
OptionalClassifierDep = Annotated[ImageClassifier | None, Depends(get_optional_classifier)]


def _classify_payload(
    classifier: ImageClassifier,
    payload: bytes,
    max_pixels: int,
    cancel_event: threading.Event,
) -> ClassificationOutcome:
    image = RawImage.from_bytes(payload, max_pixels=max_pixels)
    return classifier.try_classify(image, cancel_event)


def _to_response(outcome: ClassificationOutcome) -> ClassifyImageResponse:
    result: Classification | None = outcome.classification
    return ClassifyImageResponse(
        status=outcome.status.value,
        label=result.label if result is not None else None,
        confidence=result.confidence if result is not None else None,
        detail=outcome.error,
    )


@router.post(
    "/classify-image",
    response_model=ClassifyImageResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Classify an image",
)
async def classify_image(
    file: UploadFile,
    settings: SettingsDep,
    pool: PoolDep,
    classifier: ClassifierDep,
) -> ClassifyImageResponse:
    """Classify an uploaded image and return the top label with its confidence."""
    payload = await file.read(settings.max_file_size + 1)
    if len(payload) > settings.max_file_size:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.max_file_size} bytes",
        )

    cancel_event = threading.Event()
    try:
        outcome = await pool.run(
            _classify_payload,
            classifier,
            payload,
            settings.max_image_pixels,
            cancel_event,
            cancel_event=cancel_event,
        )
    except ImageBufferError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except TimeoutError as exc:
        logger.warning("Classification queue full, rejecting %s", file.filename)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Classification queue is full, retry later",
        ) from exc

    return _to_response(outcome)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(
    settings: SettingsDep,
    pool: PoolDep,
    classifier: OptionalClassifierDep,
) -> HealthResponse:
    """Return service health status."""
    return HealthResponse(
        status="ok" if classifier is not None else "degraded",
        gpu=settings.device == "cuda",
        classifier_loaded=classifier is not None,
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/model",
    response_model=ModelResponse,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse}},
    summary="Describe the loaded model",
)
async def model_info(classifier: ClassifierDep) -> ModelResponse:
    """Return the loaded model's path, input shape, and label count."""
    engine = classifier.engine
    return ModelResponse(
        model_path=str(engine.model_path),
        input_shape=list(engine.input_shape),
        num_labels=len(classifier.labels),
        thread_count=engine.thread_count,
        providers=engine.providers,
    )
