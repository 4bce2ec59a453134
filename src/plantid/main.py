"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from plantid.config import Settings

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from plantid.api.routes import router
from plantid.config import get_settings
from plantid.ml.engine import onnx_engine_factory
from plantid.ml.errors import ClassifierError
from plantid.ml.image_classifier import ClassificationPipeline
from plantid.ml.inference import InferencePool
from plantid.ml.resources import ResourceLocator

logger = logging.getLogger(__name__)


def load_pipeline(settings: Settings) -> ClassificationPipeline | None:
    """Build the classification pipeline, or return None if any step fails."""
    locator = ResourceLocator(settings)
    try:
        return ClassificationPipeline.initialize(
            model_path=locator.resolve_model(),
            labels_path=locator.resolve_labels(),
            engine_factory=onnx_engine_factory(settings),
        )
    except ClassifierError:
        logger.exception("Model failed to load; classification is disabled")
        return None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting PlantID (device=%s, model=%s, labels=%s)",
        settings.device,
        settings.model_file,
        settings.labels_file,
    )

    app.state.pipeline = load_pipeline(settings)
    inference_pool = InferencePool(settings)
    app.state.inference_pool = inference_pool

    logger.info("PlantID ready")
    yield

    logger.info("Shutting down PlantID")
    inference_pool.shutdown()
    logger.info("PlantID shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="PlantID",
        description="On-device plant photo classification API",
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
