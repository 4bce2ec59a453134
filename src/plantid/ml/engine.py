"""Execution engine boundary and its ONNX Runtime implementation.

The pipeline only sees the ``InferenceEngine`` protocol: the declared input
spec of tensor 0 and a bytes-in, bytes-out ``invoke``. ``OnnxEngine`` adapts
an ``InferenceSession`` to that contract for NHWC classification models.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

import numpy as np
from onnxruntime import GraphOptimizationLevel, InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from plantid.ml.errors import EngineInitError, EngineInvokeError
from plantid.ml.tensors import ElementType, QuantizationParams, RawOutput, TensorSpec

if TYPE_CHECKING:
    from plantid.config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol (kept for test mocking)
# ---------------------------------------------------------------------------


class InferenceEngine(Protocol):
    """A loaded model that can run one input tensor at a time."""

    def input_spec(self) -> TensorSpec:
        """Return the declared shape and element type of input tensor 0."""
        ...

    def invoke(self, input_bytes: bytes) -> RawOutput:
        """Run the model on raw input bytes and return output tensor 0."""
        ...


EngineFactory = Callable[[bytes], InferenceEngine]


# ---------------------------------------------------------------------------
# ONNX type mapping
# ---------------------------------------------------------------------------


_ONNX_ELEMENT_TYPES: dict[str, ElementType] = {
    "tensor(uint8)": ElementType.UINT8,
    "tensor(int8)": ElementType.INT8,
    "tensor(int32)": ElementType.INT32,
    "tensor(int64)": ElementType.INT64,
    "tensor(float16)": ElementType.FLOAT16,
    "tensor(float)": ElementType.FLOAT32,
}

_NUMPY_DTYPES: dict[ElementType, type[np.generic]] = {
    ElementType.UINT8: np.uint8,
    ElementType.INT8: np.int8,
    ElementType.INT32: np.int32,
    ElementType.INT64: np.int64,
    ElementType.FLOAT16: np.float16,
    ElementType.FLOAT32: np.float32,
}

OUTPUT_SCALE_KEY = "output_scale"
OUTPUT_ZERO_POINT_KEY = "output_zero_point"


def _element_type_for_dtype(dtype: np.dtype[np.generic]) -> ElementType:
    for element_type, np_type in _NUMPY_DTYPES.items():
        if dtype == np_type:
            return element_type
    raise EngineInvokeError(f"Unsupported output dtype: {dtype}")


# ---------------------------------------------------------------------------
# Concrete implementation
# ---------------------------------------------------------------------------


class OnnxEngine:
    """Runs an NHWC image classification model with ONNX Runtime."""

    def __init__(
        self,
        model_bytes: bytes,
        *,
        providers: list[str | tuple[str, dict[str, object]]] | None = None,
        session_options: SessionOptions | None = None,
    ) -> None:
        try:
            self._session = InferenceSession(
                model_bytes,
                sess_options=session_options,
                providers=providers or ["CPUExecutionProvider"],
            )
        except Exception as exc:
            raise EngineInitError(f"ONNX Runtime could not load model: {exc}") from exc

        inputs = self._session.get_inputs()
        outputs = self._session.get_outputs()
        if not inputs or not outputs:
            raise EngineInitError("Model must declare at least one input and one output tensor")

        self._input_name: str = inputs[0].name
        self._spec = self._read_input_spec(inputs[0].shape, inputs[0].type)
        self._quantization = self._read_quantization()

    @staticmethod
    def _read_input_spec(shape: list[int | str | None], onnx_type: str) -> TensorSpec:
        if len(shape) != 4:
            raise EngineInitError(f"Expected NHWC input tensor, got shape {shape}")

        _, height, width, channels = shape
        if not all(isinstance(dim, int) for dim in (height, width, channels)):
            raise EngineInitError(f"Input tensor must have static HWC dimensions, got {shape}")

        element_type = _ONNX_ELEMENT_TYPES.get(onnx_type)
        if element_type is None:
            raise EngineInitError(f"Unknown input element type: {onnx_type}")

        try:
            return TensorSpec(
                width=int(width),  # type: ignore[arg-type]
                height=int(height),  # type: ignore[arg-type]
                channels=int(channels),  # type: ignore[arg-type]
                element_type=element_type,
            )
        except ValueError as exc:
            raise EngineInitError(str(exc)) from exc

    def _read_quantization(self) -> QuantizationParams | None:
        metadata = self._session.get_modelmeta().custom_metadata_map
        if OUTPUT_SCALE_KEY not in metadata:
            return None
        try:
            return QuantizationParams(
                scale=float(metadata[OUTPUT_SCALE_KEY]),
                zero_point=int(metadata.get(OUTPUT_ZERO_POINT_KEY, "0")),
            )
        except ValueError as exc:
            raise EngineInitError(f"Invalid output quantization metadata: {exc}") from exc

    def input_spec(self) -> TensorSpec:
        return self._spec

    def invoke(self, input_bytes: bytes) -> RawOutput:
        spec = self._spec
        dtype = _NUMPY_DTYPES[spec.element_type]
        try:
            tensor = np.frombuffer(input_bytes, dtype=dtype).reshape(1, spec.height, spec.width, spec.channels)
        except ValueError as exc:
            raise EngineInvokeError(f"Input buffer does not match tensor spec: {exc}") from exc

        try:
            output = self._session.run(None, {self._input_name: tensor})[0]
        except Exception as exc:
            raise EngineInvokeError(f"ONNX Runtime inference failed: {exc}") from exc

        array = np.ascontiguousarray(output)
        return RawOutput(
            data=array.tobytes(),
            element_type=_element_type_for_dtype(array.dtype),
            quantization=self._quantization,
        )


# ---------------------------------------------------------------------------
# Factory wired from settings
# ---------------------------------------------------------------------------


def build_providers(settings: Settings) -> list[str | tuple[str, dict[str, object]]]:
    device = settings.device
    if device == "cuda":
        return [
            (
                "CUDAExecutionProvider",
                {
                    "device_id": 0,
                    "gpu_mem_limit": settings.gpu_mem_limit,
                    "arena_extend_strategy": "kSameAsRequested",
                },
            ),
            "CPUExecutionProvider",
        ]
    if device == "openvino":
        return [
            ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
            "CPUExecutionProvider",
        ]
    return ["CPUExecutionProvider"]


def build_session_options(settings: Settings) -> SessionOptions:
    opts = SessionOptions()
    opts.intra_op_num_threads = settings.intra_op_threads
    opts.inter_op_num_threads = settings.inter_op_threads
    opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
    opts.enable_mem_pattern = True
    opts.enable_mem_reuse = True

    if settings.device == "openvino":
        # OpenVINO does its own graph optimization
        opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
    return opts


def onnx_engine_factory(settings: Settings) -> EngineFactory:
    """Return a factory that loads model bytes into an ``OnnxEngine``."""
    providers = build_providers(settings)
    session_options = build_session_options(settings)

    def _load(model_bytes: bytes) -> InferenceEngine:
        engine = OnnxEngine(model_bytes, providers=providers, session_options=session_options)
        logger.info("Loaded ONNX model (providers=%s, input=%s)", providers, engine.input_spec())
        return engine

    return _load
