"""Tests for score decoding and top-K selection."""

from __future__ import annotations

import numpy as np
import pytest

from plantid.ml.errors import UnsupportedElementTypeError
from plantid.ml.labels import UNKNOWN_LABEL, LabelMap
from plantid.ml.scores import Prediction, decode_scores, select_top_k
from plantid.ml.tensors import ElementType, QuantizationParams, RawOutput


class TestDecodeScores:
    def test_float32_reinterprets_bytes(self) -> None:
        values = np.array([0.25, -1.5, 3.0], dtype=np.float32)
        scores = decode_scores(RawOutput(data=values.tobytes(), element_type=ElementType.FLOAT32))
        np.testing.assert_array_equal(scores, values)

    def test_float32_ignores_quantization(self) -> None:
        values = np.array([0.5], dtype=np.float32)
        raw = RawOutput(
            data=values.tobytes(),
            element_type=ElementType.FLOAT32,
            quantization=QuantizationParams(scale=10.0, zero_point=3),
        )
        np.testing.assert_array_equal(decode_scores(raw), values)

    def test_float32_bad_length_raises(self) -> None:
        with pytest.raises(UnsupportedElementTypeError, match="not a multiple of 4"):
            decode_scores(RawOutput(data=b"\x00" * 6, element_type=ElementType.FLOAT32))

    def test_uint8_dequantizes(self, quantized_output: RawOutput) -> None:
        scores = decode_scores(quantized_output)
        assert scores[0] == pytest.approx(0.0, abs=1e-6)
        assert scores[1] == pytest.approx(1.0, abs=1e-6)
        assert scores[2] == pytest.approx(128 / 255, abs=1e-6)

    def test_uint8_applies_zero_point(self) -> None:
        raw = RawOutput(
            data=bytes([0, 128, 255]),
            element_type=ElementType.UINT8,
            quantization=QuantizationParams(scale=0.5, zero_point=128),
        )
        np.testing.assert_allclose(decode_scores(raw), [-64.0, 0.0, 63.5])

    def test_uint8_without_quantization_uses_identity(self) -> None:
        raw = RawOutput(data=bytes([0, 7, 255]), element_type=ElementType.UINT8)
        np.testing.assert_array_equal(decode_scores(raw), [0.0, 7.0, 255.0])

    def test_length_and_order_preserved(self) -> None:
        raw = RawOutput(data=bytes(range(10)), element_type=ElementType.UINT8)
        np.testing.assert_array_equal(decode_scores(raw), np.arange(10, dtype=np.float32))

    @pytest.mark.parametrize("element_type", [ElementType.INT8, ElementType.INT32, ElementType.FLOAT16])
    def test_unsupported_type_raises(self, element_type: ElementType) -> None:
        with pytest.raises(UnsupportedElementTypeError):
            decode_scores(RawOutput(data=b"\x00" * 8, element_type=element_type))


class TestSelectTopK:
    @pytest.fixture()
    def labels(self) -> LabelMap:
        return LabelMap.parse("id,name\n0,Rose\n2,Tulip\n")

    def test_sparse_labels_example(self, labels: LabelMap) -> None:
        predictions = select_top_k([0.2, 0.9, 0.5], labels, k=2)
        assert predictions == [
            Prediction(label=UNKNOWN_LABEL, confidence=0.9),
            Prediction(label="Tulip", confidence=0.5),
        ]

    def test_sorted_descending(self, labels: LabelMap) -> None:
        scores = [0.1, 0.7, 0.3, 0.9, 0.5]
        confidences = [p.confidence for p in select_top_k(scores, labels, k=5)]
        assert confidences == sorted(scores, reverse=True)

    def test_ties_keep_index_order(self) -> None:
        labels = LabelMap.parse("id,name\n0,a\n1,b\n2,c\n3,d\n")
        predictions = select_top_k([0.5, 0.8, 0.5, 0.8], labels, k=4)
        assert [p.label for p in predictions] == ["b", "d", "a", "c"]

    @pytest.mark.parametrize(("k", "expected"), [(1, 1), (3, 3), (10, 3)])
    def test_length_is_min_of_k_and_n(self, labels: LabelMap, k: int, expected: int) -> None:
        assert len(select_top_k([0.2, 0.9, 0.5], labels, k=k)) == expected

    @pytest.mark.parametrize("k", [0, -3])
    def test_non_positive_k_is_empty(self, labels: LabelMap, k: int) -> None:
        assert select_top_k([0.2, 0.9, 0.5], labels, k=k) == []

    def test_empty_scores(self, labels: LabelMap) -> None:
        assert select_top_k([], labels, k=5) == []

    def test_index_beyond_labels_is_unknown(self, labels: LabelMap) -> None:
        predictions = select_top_k([0.0, 0.0, 0.0, 0.0, 1.0], labels, k=1)
        assert predictions == [Prediction(label=UNKNOWN_LABEL, confidence=1.0)]

    def test_accepts_decoded_array(self, labels: LabelMap, quantized_output: RawOutput) -> None:
        predictions = select_top_k(decode_scores(quantized_output), labels, k=1)
        assert predictions[0].label == UNKNOWN_LABEL
        assert predictions[0].confidence == pytest.approx(1.0, abs=1e-6)
