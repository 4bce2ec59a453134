"""Tensor metadata shared between the pipeline and the execution engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

PIPELINE_CHANNELS = 3


class ElementType(StrEnum):
    UINT8 = "uint8"
    INT8 = "int8"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT16 = "float16"
    FLOAT32 = "float32"


@dataclass(frozen=True)
class TensorSpec:
    """Shape and element type of the model's input tensor (index 0)."""

    width: int
    height: int
    channels: int
    element_type: ElementType

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Tensor dimensions must be positive, got {self.width}x{self.height}")
        if self.channels != PIPELINE_CHANNELS:
            raise ValueError(f"Expected {PIPELINE_CHANNELS} channels, got {self.channels}")


@dataclass(frozen=True)
class QuantizationParams:
    """Affine mapping from an 8-bit sample to a real value: (v - zero_point) * scale."""

    scale: float
    zero_point: int


@dataclass(frozen=True)
class RawOutput:
    """Output tensor bytes as produced by the engine for a single invocation."""

    data: bytes
    element_type: ElementType
    quantization: QuantizationParams | None = None
