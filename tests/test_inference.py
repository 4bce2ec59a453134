"""Tests for the serialized inference pool."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Iterator

import pytest

from plantid.config import Settings
from plantid.ml.inference import InferencePool


@pytest.fixture()
def pool() -> Iterator[InferencePool]:
    inference_pool = InferencePool(Settings(queue_timeout=0.2))
    yield inference_pool
    inference_pool.shutdown()


class TestInferencePool:
    async def test_runs_function_in_worker_thread(self, pool: InferencePool) -> None:
        result = await pool.run(lambda a, b: (a + b, threading.current_thread().name), 2, 3)
        assert result[0] == 5
        assert result[1].startswith("onnx-inference")

    async def test_propagates_exceptions(self, pool: InferencePool) -> None:
        def _fail() -> None:
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await pool.run(_fail)
        assert pool.active_count == 0

    async def test_calls_are_serialized(self, pool: InferencePool) -> None:
        release = threading.Event()
        started = threading.Event()

        def _blocking() -> str:
            started.set()
            release.wait(timeout=5)
            return "first"

        first = asyncio.create_task(pool.run(_blocking))
        await asyncio.to_thread(started.wait, 5)
        assert pool.active_count == 1

        with pytest.raises(TimeoutError):
            await pool.run(lambda: "second")
        assert pool.queue_depth == 0

        release.set()
        assert await first == "first"
        assert pool.active_count == 0

    async def test_queued_call_runs_after_release(self, pool: InferencePool) -> None:
        release = threading.Event()
        order: list[str] = []

        def _first() -> None:
            release.wait(timeout=5)
            order.append("first")

        first = asyncio.create_task(pool.run(_first))
        await asyncio.sleep(0)
        second = asyncio.create_task(pool.run(order.append, "second"))
        await asyncio.sleep(0.05)
        release.set()

        await asyncio.gather(first, second)
        assert order == ["first", "second"]
