"""
Upload state controller.

Drives one file selection through validation, downscaling, preprocessing
and inference, and keeps the two signals the UI layer observes: the
current ``UploadState`` and the last ``ScoreVector``.

Overlapping uploads are not serialized. By default the last run to finish
wins; with ``ControllerConfig.discard_stale_runs`` each run carries a
generation token and completions from superseded runs are dropped.
"""

import asyncio
import time
from collections.abc import Callable
from concurrent.futures import Executor
from typing import Any

from ..inference.classifier import ClassifierHandle
from ..inference.engine import InferenceEngine
from ..inference.preprocessing import PreprocessingPipeline
from ..inference.tensors import TensorBackend, TorchTensorBackend
from ..utils.config import Config
from ..utils.helpers import format_time
from ..utils.logging import get_logger
from .downscaling import Downscaler
from .errors import UploadError
from .state import ScoreVector, UploadState, classify_scores
from .validation import FileSelectionEvent, FileValidator


StateListener = Callable[[UploadState, tuple[float, ...]], Any]

_KEEP = object()


class StateController:
    """
    Owns the observable upload state and runs uploads through the pipeline.

    The classifier is read from ``classifier_provider`` at inference time
    only; the controller never loads, replaces or disposes it.
    """

    def __init__(
        self,
        classifier_provider: Callable[[], ClassifierHandle | None] | None = None,
        on_error: Callable[[str], Any] | None = None,
        config: Config | None = None,
        backend: TensorBackend | None = None,
        executor: Executor | None = None,
        validator: FileValidator | None = None,
        downscaler: Downscaler | None = None,
        preprocessing: PreprocessingPipeline | None = None,
        engine: InferenceEngine | None = None,
    ):
        """
        Initialize the controller.

        Args:
            classifier_provider: Returns the current classifier handle or None
            on_error: Called with a user-facing message on every reported failure
            config: Full configuration (defaults when None)
            backend: Tensor backend shared by preprocessing and inference
            executor: Executor for blocking decode and inference work
            validator: File validator override
            downscaler: Downscaler override
            preprocessing: Preprocessing pipeline override
            engine: Inference engine override
        """
        self.config = config or Config()
        self.classifier_provider = classifier_provider
        self.on_error = on_error
        self.logger = get_logger()

        backend = backend or TorchTensorBackend(self.config.inference.device)
        self.validator = validator or FileValidator(self.config.upload)
        self.downscaler = downscaler or Downscaler(self.config.upload, executor)
        self.preprocessing = preprocessing or PreprocessingPipeline(
            backend, self.config.preprocessing
        )
        self.engine = engine or InferenceEngine(backend, executor)

        self._state = UploadState.IDLE
        self._scores: ScoreVector | None = None
        self._listeners: list[StateListener] = []
        self._generation = 0
        self.run_count = 0

    @property
    def state(self) -> UploadState:
        return self._state

    @property
    def scores(self) -> tuple[float, ...]:
        """Last score vector as a tuple, empty when there is no result."""
        return self._scores.as_tuple() if self._scores is not None else ()

    @property
    def score_vector(self) -> ScoreVector | None:
        return self._scores

    def add_listener(self, listener: StateListener) -> None:
        """Register a callback invoked with (state, scores) on every transition."""
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        self._listeners.remove(listener)

    def reset(self) -> None:
        """Return to ``IDLE`` with an empty score vector."""
        self._generation += 1
        self._transition(UploadState.IDLE, self._generation, scores=None)

    def on_file_selected(self, event: FileSelectionEvent | None) -> asyncio.Task:
        """
        Schedule a run for a selection event on the running loop.

        Returns:
            Task resolving to the state after the run
        """
        return asyncio.ensure_future(self.handle_selection(event))

    async def handle_selection(self, event: FileSelectionEvent | None) -> UploadState:
        """
        Process one file-selection event from validation to result or failure.

        Failures from the upload error taxonomy are reported through
        ``on_error`` and never raised. Any other exception resets the state
        and propagates.

        Args:
            event: File-selection event

        Returns:
            The controller state once this run has finished
        """
        self._generation += 1
        token = self._generation
        self.run_count += 1
        run_id = self.run_count
        start_time = time.time()

        try:
            self._transition(UploadState.VALIDATING_OR_LOADING, token)
            scores = await self._run_pipeline(event, token)
        except UploadError as e:
            self._fail(e, token)
            return self._state
        except Exception:
            self._transition(UploadState.IDLE, token, scores=None)
            raise

        result = classify_scores(scores)
        if self._transition(result, token, scores=scores):
            self.logger.info(
                f"Run {run_id}: {result.value} in {format_time(time.time() - start_time)}"
            )
            self.logger.log_metrics(
                {"fake_score": scores.fake_score, "real_score": scores.real_score},
                step=run_id,
            )
        return self._state

    async def _run_pipeline(self, event: FileSelectionEvent | None, token: int) -> ScoreVector:
        selected = self.validator.validate(event)

        asset = await self.downscaler.downscale(selected)
        with asset:
            batched = self.preprocessing.run(asset)

        try:
            classifier = self.classifier_provider() if self.classifier_provider else None
        except BaseException:
            batched.release()
            raise

        return await self.engine.run(
            classifier,
            batched,
            on_unavailable=lambda: self._transition(UploadState.AWAITING_CLASSIFIER, token),
        )

    def _fail(self, error: UploadError, token: int) -> None:
        if not self._transition(UploadState.IDLE, token, scores=None):
            return

        if error.silent:
            self.logger.debug(f"Run ended without result: {error.user_message}")
            return

        self.logger.warning(f"Upload failed: {error.user_message}")
        if self.on_error is not None:
            self.on_error(error.user_message)

    def _transition(self, state: UploadState, token: int, scores: Any = _KEEP) -> bool:
        if self.config.controller.discard_stale_runs and token != self._generation:
            self.logger.debug(f"Discarding stale transition to {state.value}")
            return False

        self._state = state
        if scores is not _KEEP:
            self._scores = scores

        for listener in list(self._listeners):
            listener(state, self.scores)
        return True
