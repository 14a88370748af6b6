"""
Unit tests for the preprocessing pipeline.
"""

import pytest
import torch

from realfake_classifier.inference.preprocessing import PreprocessingPipeline
from realfake_classifier.upload.downscaling import ImageAsset
from realfake_classifier.upload.errors import ImageDecodeFailed
from realfake_classifier.utils.config import PreprocessingConfig


@pytest.fixture
def pipeline(tracking_backend) -> PreprocessingPipeline:
    return PreprocessingPipeline(tracking_backend)


class TestPreprocessingOutput:
    """Test the batch handed to the classifier."""

    def test_batched_output(self, pipeline, tracking_backend, image_asset):
        """A 256x256 asset becomes a (1, 256, 256, 3) float32 batch."""
        batched = pipeline.run(image_asset)

        assert batched.shape == (1, 256, 256, 3)
        assert batched.tensor.dtype == torch.float32
        assert tracking_backend.live_buffers == 1

    def test_pixel_values_are_not_normalized(self, pipeline, image_asset):
        """Values stay on the 0-255 scale."""
        batched = pipeline.run(image_asset)

        # Solid green source
        green = batched.tensor[0, :, :, 1]
        assert green.mean().item() > 100
        assert batched.tensor.max().item() <= 255.0

    def test_custom_target_size(self, tracking_backend, image_asset):
        pipeline = PreprocessingPipeline(
            tracking_backend, PreprocessingConfig(target_size=(224, 224))
        )

        assert pipeline.run(image_asset).shape == (1, 224, 224, 3)

    def test_single_channel(self, tracking_backend, image_asset):
        """A one-channel configuration yields grayscale batches."""
        pipeline = PreprocessingPipeline(tracking_backend, PreprocessingConfig(channels=1))

        assert pipeline.run(image_asset).shape == (1, 256, 256, 1)

    @pytest.mark.parametrize("channels", [0, 2, 4])
    def test_unsupported_channels(self, tracking_backend, channels):
        with pytest.raises(ValueError):
            PreprocessingPipeline(tracking_backend, PreprocessingConfig(channels=channels))


class TestBufferDiscipline:
    """Test buffer release across the pipeline stages."""

    def test_at_most_two_buffers_live(self, pipeline, tracking_backend, image_asset):
        pipeline.run(image_asset).release()

        assert tracking_backend.peak_buffers <= 2
        assert tracking_backend.events == [
            ("alloc", "pixels"),
            ("alloc", "resized"),
            ("release", "pixels"),
            ("alloc", "batched"),
            ("release", "resized"),
            ("release", "batched"),
        ]

    @pytest.mark.parametrize("stage", ["resized", "batched"])
    def test_failure_releases_intermediates(self, pipeline, tracking_backend, image_asset, stage):
        """A failing step leaves no buffer behind."""
        tracking_backend.fail_on = stage

        with pytest.raises(RuntimeError):
            pipeline.run(image_asset)

        assert tracking_backend.live_buffers == 0

    def test_corrupt_asset(self, pipeline, tracking_backend):
        with pytest.raises(ImageDecodeFailed):
            pipeline.run(ImageAsset(b"not a jpeg", 256, 256))

        assert tracking_backend.live_buffers == 0

    def test_asset_is_not_released(self, pipeline, image_asset):
        """The caller keeps ownership of the asset."""
        pipeline.run(image_asset)

        assert not image_asset.released
