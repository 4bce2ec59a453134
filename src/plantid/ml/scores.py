"""Score decoding and top-K ranking of model output."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from plantid.ml.errors import UnsupportedElementTypeError
from plantid.ml.tensors import ElementType

if TYPE_CHECKING:
    from plantid.ml.labels import LabelMap
    from plantid.ml.tensors import RawOutput

_FLOAT32_SIZE = np.dtype(np.float32).itemsize


@dataclass(frozen=True)
class Prediction:
    """A single classification prediction."""

    label: str
    confidence: float


def decode_scores(raw: RawOutput) -> NDArray[np.float32]:
    """Convert a raw output buffer into one float score per class.

    Index ``i`` of the result is class ``i`` in the engine's declared order.
    """
    if raw.element_type == ElementType.FLOAT32:
        if len(raw.data) % _FLOAT32_SIZE != 0:
            raise UnsupportedElementTypeError(
                f"float32 output length {len(raw.data)} is not a multiple of {_FLOAT32_SIZE}"
            )
        return np.frombuffer(raw.data, dtype=np.float32).copy()

    if raw.element_type == ElementType.UINT8:
        scale = 1.0
        zero_point = 0
        if raw.quantization is not None:
            scale = raw.quantization.scale
            zero_point = raw.quantization.zero_point
        samples = np.frombuffer(raw.data, dtype=np.uint8).astype(np.float32)
        return ((samples - np.float32(zero_point)) * np.float32(scale)).astype(np.float32)

    raise UnsupportedElementTypeError(f"Unsupported output element type: {raw.element_type}")


def select_top_k(scores: Sequence[float] | NDArray[np.float32], label_map: LabelMap, k: int) -> list[Prediction]:
    """Return the ``k`` highest scores as labelled predictions, best first.

    Equal scores keep ascending index order. ``k <= 0`` yields an empty list
    and ``k`` larger than the number of scores is clamped.
    """
    if k <= 0:
        return []

    values = np.asarray(scores, dtype=np.float64)
    order = np.argsort(-values, kind="stable")[:k]
    return [Prediction(label=label_map.label_for(int(index)), confidence=float(values[index])) for index in order]
