"""
Classifier handles and their provider.

The pipeline never owns a model: it reads whatever handle the provider
currently holds at inference time. ``TorchClassifier`` adapts a PyTorch or
TorchScript model to the handle interface; ``ClassifierProvider`` is the
process-wide holder a model loader fills in.
"""

from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import torch
import torch.nn as nn

from ..utils.config import InferenceConfig
from ..utils.helpers import get_device
from ..utils.logging import get_logger


class ModelLoadError(Exception):
    """Raised when a classifier checkpoint cannot be loaded."""

    pass


@runtime_checkable
class ClassifierHandle(Protocol):
    """Anything that runs one forward pass on a (1, H, W, C) float batch."""

    def predict(self, batch: Any) -> Any:
        """Return a (1, 2) output: index 0 fake score, index 1 real score."""
        ...


class TorchClassifier:
    """
    Classifier handle around a PyTorch model.

    The pipeline hands over channels-last batches. Models trained on
    channels-first input are supported with ``input_layout="nchw"``.
    """

    def __init__(
        self,
        model: nn.Module,
        device: str | torch.device | None = None,
        input_layout: str = "nhwc",
    ):
        """
        Initialize the classifier handle.

        Args:
            model: PyTorch model returning logits or {"logits": ...}
            device: Device to run on ("auto" or None picks CUDA when available)
            input_layout: Layout the model expects, "nhwc" or "nchw"
        """
        input_layout = input_layout.lower()
        if input_layout not in ("nhwc", "nchw"):
            raise ValueError(f"Unsupported input layout: {input_layout}")

        self.device = device if isinstance(device, torch.device) else get_device(device)
        self.input_layout = input_layout
        self.model = model.to(self.device)
        self.model.eval()

    def predict(self, batch: torch.Tensor) -> torch.Tensor:
        """
        Run one forward pass.

        Args:
            batch: (1, H, W, C) float32 tensor

        Returns:
            Output tensor of shape (1, 2)
        """
        inputs = batch.to(self.device)
        if self.input_layout == "nchw":
            inputs = inputs.permute(0, 3, 1, 2)

        with torch.no_grad():
            outputs = self.model(inputs)

        if isinstance(outputs, dict):
            outputs = outputs["logits"]
        return outputs

    @classmethod
    def from_checkpoint(
        cls,
        checkpoint_path: str | Path,
        device: str | None = "auto",
        input_layout: str = "nhwc",
    ) -> "TorchClassifier":
        """
        Load a TorchScript export as a classifier handle.

        Args:
            checkpoint_path: Path to a ``torch.jit.save`` file
            device: Device to load onto
            input_layout: Layout the model expects

        Returns:
            Classifier handle

        Raises:
            ModelLoadError: If the checkpoint is missing or unreadable
        """
        checkpoint_path = Path(checkpoint_path)
        if not checkpoint_path.exists():
            raise ModelLoadError(f"Checkpoint not found: {checkpoint_path}")

        target = get_device(device)
        try:
            model = torch.jit.load(str(checkpoint_path), map_location=target)
        except Exception as e:
            raise ModelLoadError(f"Failed to load model: {e}") from e

        return cls(model, device=target, input_layout=input_layout)


class ClassifierProvider:
    """
    Holder for the process-wide classifier handle.

    Returns ``None`` from ``get()`` until a handle is set or loaded, which
    the pipeline reports as the model being unavailable.
    """

    def __init__(self, classifier: ClassifierHandle | None = None):
        self._classifier = classifier
        self.logger = get_logger()

    @property
    def ready(self) -> bool:
        return self._classifier is not None

    def get(self) -> ClassifierHandle | None:
        return self._classifier

    __call__ = get

    def set(self, classifier: ClassifierHandle | None) -> None:
        self._classifier = classifier

    def clear(self) -> None:
        self._classifier = None

    def load(self, config: InferenceConfig) -> ClassifierHandle:
        """
        Load the classifier described by an inference configuration.

        The previous handle is dropped first, so a failed load leaves the
        provider empty.

        Args:
            config: Inference configuration with ``checkpoint_path`` set

        Returns:
            The loaded classifier handle

        Raises:
            ModelLoadError: If no checkpoint is configured or loading fails
        """
        self.clear()
        if not config.checkpoint_path:
            raise ModelLoadError("No checkpoint path configured")

        self.logger.info(f"Loading model from: {config.checkpoint_path}")
        try:
            classifier = TorchClassifier.from_checkpoint(
                config.checkpoint_path,
                device=config.device,
                input_layout=config.input_layout,
            )
        except ModelLoadError as e:
            self.logger.error(str(e))
            raise

        self._classifier = classifier
        self.logger.info("Model loaded successfully")
        return classifier
