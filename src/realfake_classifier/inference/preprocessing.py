"""
Preprocessing pipeline: image asset to batched model input.

Decodes a downscaled image asset into pixels, resizes it to the model's
input size as float32 and adds the batch dimension. Every intermediate
buffer is released as soon as the next one exists, so no more than two
buffers from this stage are live at any moment.
"""

from ..upload.downscaling import ImageAsset
from ..utils.config import PreprocessingConfig
from ..utils.logging import get_logger
from .tensors import TensorBackend, TensorHandle, TorchTensorBackend


class PreprocessingPipeline:
    """Builds the (1, H, W, C) float32 batch the classifier expects."""

    def __init__(
        self,
        backend: TensorBackend | None = None,
        config: PreprocessingConfig | None = None,
    ):
        """
        Initialize the preprocessing pipeline.

        Args:
            backend: Tensor backend (a CPU/GPU torch backend when None)
            config: Preprocessing configuration (defaults when None)
        """
        self.backend = backend or TorchTensorBackend()
        self.config = config or PreprocessingConfig()
        self.target_size = tuple(self.config.target_size)
        if self.config.channels not in (1, 3):
            raise ValueError(f"Unsupported channel count: {self.config.channels}")
        self.channels = self.config.channels
        self.logger = get_logger()

    def run(self, asset: ImageAsset) -> TensorHandle:
        """
        Turn an image asset into a batched tensor.

        Ownership of the returned handle passes to the caller.

        Args:
            asset: Downscaled image asset

        Returns:
            Handle to a (1, H, W, channels) float32 tensor

        Raises:
            ImageDecodeFailed: If the asset cannot be decoded
        """
        pixels = self.backend.from_pixels(asset, self.channels)
        try:
            resized = self.backend.resize_bilinear(pixels, self.target_size)
        finally:
            pixels.release()

        try:
            batched = self.backend.expand_dims(resized, 0)
        finally:
            resized.release()

        self.logger.debug(f"Preprocessed {asset!r} into batch of shape {batched.shape}")
        return batched
