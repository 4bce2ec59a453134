"""Image classification pipeline.

    image -> resize -> tensor bytes -> engine.invoke -> decode -> top-K -> labels

A pipeline is built by ``ClassificationPipeline.initialize``, which either
returns a ready pipeline or raises; no partially loaded instance escapes.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from plantid.ml import preprocessing
from plantid.ml.errors import ClassifierError, EngineInitError, EngineInvokeError, ModelNotFoundError
from plantid.ml.labels import LabelMap
from plantid.ml.scores import Prediction, decode_scores, select_top_k

if TYPE_CHECKING:
    from PIL import Image

    from plantid.ml.engine import EngineFactory, InferenceEngine
    from plantid.ml.tensors import TensorSpec

logger = logging.getLogger(__name__)


class PipelineState(StrEnum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    RUNNING = "running"


class ClassificationPipeline:
    """A loaded model together with its input spec and label map.

    Everything except the transient running state is immutable after
    ``initialize``. Calls to ``classify`` must be serialized per instance.
    """

    def __init__(self, engine: InferenceEngine, labels: LabelMap, model_name: str) -> None:
        self._state = PipelineState.UNINITIALIZED
        self._engine = engine
        self._spec = engine.input_spec()
        self._labels = labels
        self._model_name = model_name
        self._state = PipelineState.READY

    @classmethod
    def initialize(
        cls,
        model_path: Path,
        labels_path: Path,
        engine_factory: EngineFactory,
    ) -> ClassificationPipeline:
        """Load the model and labels and return a ready pipeline.

        Raises:
            ModelNotFoundError: If the model file cannot be read.
            EngineInitError: If the engine rejects the model.
            LabelsNotFoundError: If the label file cannot be read.
        """
        try:
            model_bytes = Path(model_path).read_bytes()
        except OSError as exc:
            raise ModelNotFoundError(f"Model file not readable: {model_path}") from exc

        try:
            engine = engine_factory(model_bytes)
            engine.input_spec()
        except ClassifierError:
            raise
        except Exception as exc:
            raise EngineInitError(str(exc)) from exc

        labels = LabelMap.load(Path(labels_path))
        pipeline = cls(engine, labels, model_name=Path(model_path).stem)
        logger.info(
            "Pipeline ready (model=%s, input=%dx%d %s, labels=%d)",
            pipeline.model_name,
            pipeline.input_spec.width,
            pipeline.input_spec.height,
            pipeline.input_spec.element_type,
            len(labels),
        )
        return pipeline

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def input_spec(self) -> TensorSpec:
        return self._spec

    @property
    def labels(self) -> LabelMap:
        return self._labels

    @property
    def state(self) -> PipelineState:
        return self._state

    def classify(self, image: Image.Image, top_k: int) -> list[Prediction]:
        """Run the full pipeline on one image.

        Raises:
            InvalidInputImageError: If the image cannot be resized or rasterized.
            UnsupportedElementTypeError: If the model's input or output type is unsupported.
            EngineInvokeError: If the engine fails to run.
        """
        self._state = PipelineState.RUNNING
        try:
            spec = self._spec
            resized = preprocessing.resize(image, spec.width, spec.height)
            input_bytes = preprocessing.to_tensor_bytes(resized, spec.element_type)

            try:
                raw = self._engine.invoke(input_bytes)
            except ClassifierError:
                raise
            except Exception as exc:
                raise EngineInvokeError(str(exc)) from exc

            scores = decode_scores(raw)
            predictions = select_top_k(scores, self._labels, top_k)
        finally:
            self._state = PipelineState.READY

        logger.debug("Classified %dx%d image into %d prediction(s)", image.width, image.height, len(predictions))
        return predictions
