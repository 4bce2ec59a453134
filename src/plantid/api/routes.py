"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, UploadFile, status

from plantid.api.dependencies import get_inference_pool, get_pipeline, get_settings, verify_api_key
from plantid.api.schemas import (
    ClassifyImageResponse,
    ErrorResponse,
    HealthResponse,
    ImageTag,
    InputSpecInfo,
    ModelInfo,
    ModelsResponse,
)
from plantid.ml.errors import ClassifierError, InvalidInputImageError
from plantid.ml.preprocessing import decode_image

if TYPE_CHECKING:
    from plantid.ml.image_classifier import ClassificationPipeline
    from plantid.ml.scores import Prediction

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])

# Named HTTP_413_CONTENT_TOO_LARGE only in newer starlette releases.
_HTTP_CONTENT_TOO_LARGE = 413

MODEL_UNAVAILABLE_DETAIL = "Model failed to load. Check model file name."


def _decode_and_classify(
    pipeline: ClassificationPipeline,
    image_bytes: bytes,
    max_pixels: int,
    top_k: int,
) -> list[Prediction]:
    image = decode_image(image_bytes, max_pixels=max_pixels)
    return pipeline.classify(image, top_k)


@router.post(
    "/classify-image",
    response_model=ClassifyImageResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        _HTTP_CONTENT_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Classify an image with tags",
)
async def classify_image(
    request: Request,
    file: UploadFile,
    top_k: Annotated[int | None, Query(ge=1, le=100)] = None,
) -> ClassifyImageResponse:
    """Classify an uploaded image and return ranked tags."""
    settings = get_settings(request)
    pipeline = get_pipeline(request)
    if pipeline is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=MODEL_UNAVAILABLE_DETAIL)

    too_large = HTTPException(
        status_code=_HTTP_CONTENT_TOO_LARGE,
        detail=f"File exceeds {settings.max_file_size} bytes",
    )
    if file.size is not None and file.size > settings.max_file_size:
        raise too_large
    # One byte past the limit is enough to tell an oversized upload apart.
    image_bytes = await file.read(settings.max_file_size + 1)
    if len(image_bytes) > settings.max_file_size:
        raise too_large

    pool = get_inference_pool(request)
    try:
        predictions = await pool.run(
            _decode_and_classify,
            pipeline,
            image_bytes,
            settings.max_image_pixels,
            top_k or settings.top_k,
        )
    except TimeoutError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Inference queue is busy, try again later",
        ) from None
    except InvalidInputImageError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ClassifierError as exc:
        logger.exception("Classification failed for %s", file.filename)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    return ClassifyImageResponse(tags=[ImageTag(label=p.label, confidence=p.confidence) for p in predictions])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = get_settings(request)
    pool = get_inference_pool(request)
    pipeline = get_pipeline(request)
    return HealthResponse(
        status="ok" if pipeline is not None else "degraded",
        gpu=settings.device == "cuda",
        models_loaded=[pipeline.model_name] if pipeline is not None else [],
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/models",
    response_model=ModelsResponse,
    summary="List available models",
)
async def list_models(request: Request) -> ModelsResponse:
    """Return the configured model and, once loaded, its input spec."""
    settings = get_settings(request)
    pipeline = get_pipeline(request)

    if pipeline is None:
        name = settings.model_file.rsplit(".", 1)[0]
        return ModelsResponse(models=[ModelInfo(name=name, status="unavailable")])

    spec = pipeline.input_spec
    return ModelsResponse(
        models=[
            ModelInfo(
                name=pipeline.model_name,
                status="active",
                input=InputSpecInfo(
                    width=spec.width,
                    height=spec.height,
                    channels=spec.channels,
                    element_type=str(spec.element_type),
                ),
                num_labels=len(pipeline.labels),
            )
        ]
    )
