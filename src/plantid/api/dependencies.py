"""Request-scoped accessors for app state and API key authentication."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

if TYPE_CHECKING:
    from plantid.config import Settings
    from plantid.ml.image_classifier import ClassificationPipeline
    from plantid.ml.inference import InferencePool

_bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def get_pipeline(request: Request) -> ClassificationPipeline | None:
    """Return the loaded pipeline, or None if model loading failed at startup."""
    pipeline: ClassificationPipeline | None = getattr(request.app.state, "pipeline", None)
    return pipeline


async def verify_api_key(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> None:
    """Check the Bearer token against the configured API key.

    With PLANTID_API_KEY unset every request passes; otherwise requests must
    carry 'Authorization: Bearer <key>'.
    """
    api_key = get_settings(request).api_key
    if api_key is None:
        return

    if credentials is None or not secrets.compare_digest(credentials.credentials.encode(), api_key.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )
