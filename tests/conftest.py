"""Shared fixtures: fake engines, quantized output and on-disk model resources."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from fakes import EngineBuilder, FakeEngine
from plantid.ml.tensors import ElementType, QuantizationParams, RawOutput, TensorSpec

LABELS_CSV = "id,name\n0,Rose\n2,Tulip\n"


@pytest.fixture()
def make_engine() -> EngineBuilder:
    """Build a FakeEngine; float32 scores are given as a list."""

    def _build(
        scores: list[float] | None = None,
        *,
        width: int = 4,
        height: int = 4,
        element_type: ElementType = ElementType.FLOAT32,
        output: RawOutput | None = None,
    ) -> FakeEngine:
        if output is None:
            values = np.asarray(scores if scores is not None else [0.2, 0.9, 0.5], dtype=np.float32)
            output = RawOutput(data=values.tobytes(), element_type=ElementType.FLOAT32)
        spec = TensorSpec(width=width, height=height, channels=3, element_type=element_type)
        return FakeEngine(spec, output)

    return _build


@pytest.fixture()
def quantized_output() -> RawOutput:
    """uint8 scores [0, 255, 128] with a 1/255 scale."""
    return RawOutput(
        data=bytes([0, 255, 128]),
        element_type=ElementType.UINT8,
        quantization=QuantizationParams(scale=0.00392156862, zero_point=0),
    )


@pytest.fixture()
def model_file(tmp_path: Path) -> Path:
    path = tmp_path / "inat_plant.onnx"
    path.write_bytes(b"fake-model-bytes")
    return path


@pytest.fixture()
def labels_file(tmp_path: Path) -> Path:
    path = tmp_path / "aiy_plants_V1_labelmap.csv"
    path.write_text(LABELS_CSV, encoding="utf-8")
    return path
