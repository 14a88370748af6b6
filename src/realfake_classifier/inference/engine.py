"""
Inference engine for the fake/real classifier.

Runs exactly one forward pass per upload on the batch handed over by the
preprocessing pipeline and turns the raw output into a ``ScoreVector``.
The engine owns the batch it is given and the output buffer it receives,
and releases both on every path.
"""

import asyncio
import time
from collections.abc import Callable
from concurrent.futures import Executor
from typing import Any

import numpy as np

from ..upload.errors import InferenceFailed, ModelUnavailable
from ..upload.state import ScoreVector
from ..utils.logging import get_logger
from .classifier import ClassifierHandle
from .tensors import TensorBackend, TensorHandle, TorchTensorBackend


class InferenceEngine:
    """Single-shot inference over an injected classifier handle."""

    def __init__(self, backend: TensorBackend | None = None, executor: Executor | None = None):
        """
        Initialize the inference engine.

        Args:
            backend: Tensor backend that created the batches (torch when None)
            executor: Executor for the forward pass; the running loop's
                default executor when None
        """
        self.backend = backend or TorchTensorBackend()
        self.executor = executor
        self.logger = get_logger()

        # Performance tracking
        self.inference_times: list[float] = []

    async def run(
        self,
        classifier: ClassifierHandle | None,
        batched: TensorHandle,
        on_unavailable: Callable[[], Any] | None = None,
    ) -> ScoreVector:
        """
        Classify one batched image.

        Args:
            classifier: Classifier handle, or None while no model is ready
            batched: (1, H, W, C) batch; ownership passes to the engine
            on_unavailable: Called before ``ModelUnavailable`` is raised

        Returns:
            Scores from the first row of the model output

        Raises:
            ModelUnavailable: If no classifier handle is available
            InferenceFailed: If the model raises or returns a non-(1, 2) output
        """
        try:
            if classifier is None:
                if on_unavailable is not None:
                    on_unavailable()
                raise ModelUnavailable()

            values = await self._forward(classifier, batched)
        finally:
            batched.release()

        try:
            return ScoreVector.from_output(values)
        except ValueError as e:
            self.logger.error(f"Unexpected model output: {e}")
            raise InferenceFailed() from e

    async def _forward(self, classifier: ClassifierHandle, batched: TensorHandle) -> list:
        loop = asyncio.get_running_loop()
        start_time = time.time()

        try:
            raw = await loop.run_in_executor(self.executor, classifier.predict, batched.tensor)
            output = self.backend.adopt(raw)
        except Exception as e:
            self.logger.exception(f"Model inference failed: {e}")
            raise InferenceFailed() from e

        try:
            values = self.backend.read(output)
        finally:
            output.release()

        inference_time = time.time() - start_time
        self.inference_times.append(inference_time)
        self.logger.debug(f"Forward pass took {inference_time * 1000:.1f}ms")
        return values

    def get_performance_stats(self) -> dict[str, Any]:
        """
        Get inference performance statistics.

        Returns:
            Performance statistics
        """
        if not self.inference_times:
            return {"message": "No inference performed yet"}

        times = np.array(self.inference_times)

        return {
            "total_inferences": len(self.inference_times),
            "avg_time_per_image": float(np.mean(times)),
            "min_time": float(np.min(times)),
            "max_time": float(np.max(times)),
            "std_time": float(np.std(times)),
        }

    def clear_cache(self) -> None:
        """Clear performance tracking cache."""
        self.inference_times.clear()
