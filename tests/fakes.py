"""In-memory stand-in for the inference engine boundary."""

from __future__ import annotations

from collections.abc import Callable

from plantid.ml.tensors import RawOutput, TensorSpec


class FakeEngine:
    """Returns a fixed output tensor and records every input buffer it receives."""

    def __init__(self, spec: TensorSpec, output: RawOutput) -> None:
        self._spec = spec
        self._output = output
        self.model_bytes: bytes | None = None
        self.inputs: list[bytes] = []
        self.fail_with: Exception | None = None

    def input_spec(self) -> TensorSpec:
        return self._spec

    def invoke(self, input_bytes: bytes) -> RawOutput:
        self.inputs.append(input_bytes)
        if self.fail_with is not None:
            raise self.fail_with
        return self._output


EngineBuilder = Callable[..., FakeEngine]
