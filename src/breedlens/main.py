"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from breedlens.api.routes import router
from breedlens.config import get_settings
from breedlens.ml.image_classifier import ImageClassifier
from breedlens.ml.inference import InferencePool

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: load the classifier on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting BreedLens (device=%s, threads=%s, max_concurrent=%s, model=%s, labels=%s)",
        settings.device,
        settings.thread_count,
        settings.max_concurrent,
        settings.model_path,
        settings.labels_path,
    )

    app.state.classifier = ImageClassifier.from_settings(settings)
    if app.state.classifier is None:
        logger.warning("Classification disabled; /classify-image will return 503")

    inference_pool = InferencePool(settings)
    app.state.inference_pool = inference_pool

    logger.info("BreedLens ready")
    yield

    logger.info("Shutting down BreedLens")
    inference_pool.shutdown()
    logger.info("BreedLens shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="BreedLens",
        description="Single-image classification with a local ONNX model",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Serve the application with uvicorn using the configured host and port."""
    settings = get_settings()
    uvicorn.run("breedlens.main:app", host=settings.host, port=settings.port)
