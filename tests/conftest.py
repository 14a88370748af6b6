"""
Pytest configuration and fixtures for the Real/Fake Image Classifier tests.

This module provides shared fixtures for all tests, including in-memory
sample images, an allocation-tracking tensor backend and fake classifier
handles.
"""

# Add src to path for imports
import io
import sys
import tempfile
from pathlib import Path

import pytest
import torch
from PIL import Image


sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from realfake_classifier.inference.tensors import TensorHandle, TorchTensorBackend
from realfake_classifier.upload.downscaling import ImageAsset
from realfake_classifier.upload.validation import FileSelectionEvent, SelectedFile
from realfake_classifier.utils.config import Config


class TrackingTensorBackend(TorchTensorBackend):
    """Torch backend that records every allocation and release."""

    def __init__(self):
        super().__init__("cpu")
        self.peak_buffers = 0
        self.events: list[tuple[str, str]] = []
        self.fail_on: str | None = None

    def _track(self, tensor, label: str) -> TensorHandle:
        if self.fail_on == label:
            raise RuntimeError(f"Injected failure allocating {label}")
        handle = super()._track(tensor, label)
        self.peak_buffers = max(self.peak_buffers, self.live_buffers)
        self.events.append(("alloc", label))
        return handle

    def dispose(self, handle: TensorHandle) -> None:
        label = handle.label
        super().dispose(handle)
        self.events.append(("release", label))


class FakeClassifier:
    """Classifier handle returning fixed scores."""

    def __init__(self, scores=(0.2, 0.8)):
        self.scores = scores
        self.calls = 0
        self.last_shape = None
        self.last_dtype = None

    def predict(self, batch):
        self.calls += 1
        self.last_shape = tuple(batch.shape)
        self.last_dtype = batch.dtype
        return torch.tensor([list(self.scores)], dtype=torch.float64)


class FailingClassifier:
    """Classifier handle whose forward pass raises."""

    def __init__(self):
        self.calls = 0

    def predict(self, batch):
        self.calls += 1
        raise RuntimeError("CUDA out of memory")


def encode_image(
    size: tuple[int, int] = (300, 300),
    fmt: str = "JPEG",
    color: str = "blue",
    mode: str = "RGB",
) -> bytes:
    """Encode a solid-color image in memory."""
    buffer = io.BytesIO()
    Image.new(mode, size, color=color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def sample_config() -> Config:
    """Create a CPU-only configuration for testing."""
    config = Config()
    config.inference.device = "cpu"
    return config


@pytest.fixture
def jpeg_file() -> SelectedFile:
    """A valid 300x300 JPEG upload."""
    return SelectedFile("photo.jpg", "image/jpeg", encode_image((300, 300), "JPEG"))


@pytest.fixture
def png_file() -> SelectedFile:
    """A valid 120x80 PNG upload."""
    return SelectedFile("photo.png", "image/png", encode_image((120, 80), "PNG", "red"))


@pytest.fixture
def gif_file() -> SelectedFile:
    """A GIF upload, which is not an accepted type."""
    return SelectedFile(
        "animation.gif", "image/gif", encode_image((64, 64), "GIF", "white")
    )


@pytest.fixture
def jpeg_event(jpeg_file) -> FileSelectionEvent:
    return FileSelectionEvent.of(jpeg_file)


@pytest.fixture
def image_asset() -> ImageAsset:
    """A canonical 256x256 JPEG asset."""
    return ImageAsset(encode_image((256, 256), "JPEG", "green"), 256, 256)


@pytest.fixture
def tracking_backend() -> TrackingTensorBackend:
    return TrackingTensorBackend()


@pytest.fixture
def fake_classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def failing_classifier() -> FailingClassifier:
    return FailingClassifier()


@pytest.fixture
def make_classifier():
    """Factory for fake classifiers with given scores."""
    return FakeClassifier


@pytest.fixture
def make_image():
    """Factory for encoded in-memory images."""
    return encode_image


@pytest.fixture(autouse=True)
def set_deterministic():
    """Set deterministic behavior for reproducible tests."""
    torch.manual_seed(42)


# Test markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
