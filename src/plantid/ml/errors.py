"""Error types raised by the classification pipeline.

Initialization errors (model, labels, engine) are fatal for a pipeline
instance. The remaining errors are raised per call and leave the pipeline
usable.
"""

from __future__ import annotations


class ClassifierError(Exception):
    """Base class for all pipeline errors."""

    message: str = "Classification failed."

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        super().__init__(detail or self.message)


class ModelNotFoundError(ClassifierError):
    message = "Model file not found."


class LabelsNotFoundError(ClassifierError):
    message = "Labels file not found."


class EngineInitError(ClassifierError):
    message = "Inference engine failed to load the model."


class InvalidInputImageError(ClassifierError):
    message = "Unable to preprocess image for model input."


class UnsupportedElementTypeError(ClassifierError):
    message = "Model tensor type is not supported."


class EngineInvokeError(ClassifierError):
    message = "Inference engine failed to run the model."
