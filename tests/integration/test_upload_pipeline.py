"""
Integration tests for the complete upload-to-result pipeline.
"""

import json
import sys
from pathlib import Path

import pytest
import torch
import torch.nn as nn

from realfake_classifier.inference.classifier import ClassifierProvider
from realfake_classifier.upload.controller import StateController
from realfake_classifier.upload.state import UploadState
from realfake_classifier.upload.validation import FileSelectionEvent, SelectedFile
from realfake_classifier.utils.config import Config


sys.path.insert(0, str(Path(__file__).parent.parent.parent / "scripts"))


class BrightnessHead(nn.Module):
    """Scores bright images as real and dark images as fake."""

    def forward(self, x):
        brightness = x.mean(dim=[1, 2, 3]) / 255.0
        return torch.stack([1.0 - brightness, brightness], dim=1)


@pytest.fixture
def scripted_checkpoint(temp_dir) -> Path:
    path = temp_dir / "brightness.pt"
    torch.jit.save(torch.jit.script(BrightnessHead()), str(path))
    return path


@pytest.mark.asyncio
async def test_jpeg_upload_to_real_result(sample_config, tracking_backend, jpeg_file, make_classifier):
    """A 300x300 JPEG ends in RESULT_REAL with the model's scores and no leaked buffers."""
    errors = []
    states = []
    provider = ClassifierProvider(make_classifier((0.2, 0.8)))
    controller = StateController(
        classifier_provider=provider,
        on_error=errors.append,
        config=sample_config,
        backend=tracking_backend,
    )
    controller.add_listener(lambda state, scores: states.append(state))

    state = await controller.handle_selection(FileSelectionEvent.of(jpeg_file))

    assert state == UploadState.RESULT_REAL
    assert controller.scores == (0.2, 0.8)
    assert states == [UploadState.VALIDATING_OR_LOADING, UploadState.RESULT_REAL]
    assert errors == []
    assert tracking_backend.live_buffers == 0
    assert tracking_backend.peak_buffers <= 2


@pytest.mark.asyncio
async def test_scripted_model_end_to_end(sample_config, tracking_backend, make_image, scripted_checkpoint):
    """A TorchScript checkpoint loaded through the provider drives the result."""
    sample_config.inference.checkpoint_path = str(scripted_checkpoint)
    provider = ClassifierProvider()
    provider.load(sample_config.inference)
    controller = StateController(
        classifier_provider=provider, config=sample_config, backend=tracking_backend
    )

    white = SelectedFile("white.png", "image/png", make_image((640, 480), "PNG", "white"))
    black = SelectedFile("black.jpg", "image/jpeg", make_image((100, 100), "JPEG", "black"))

    assert await controller.handle_selection(FileSelectionEvent.of(white)) == UploadState.RESULT_REAL
    assert controller.score_vector.real_score == pytest.approx(1.0, abs=0.02)

    assert await controller.handle_selection(FileSelectionEvent.of(black)) == UploadState.RESULT_FAKE
    assert controller.score_vector.fake_score == pytest.approx(1.0, abs=0.02)

    assert tracking_backend.live_buffers == 0
    assert controller.engine.get_performance_stats()["total_inferences"] == 2


@pytest.mark.asyncio
async def test_model_arrives_between_uploads(sample_config, jpeg_file, make_classifier):
    """A run without a model fails; the next run after loading succeeds."""
    errors = []
    provider = ClassifierProvider()
    controller = StateController(
        classifier_provider=provider, on_error=errors.append, config=sample_config
    )
    event = FileSelectionEvent.of(jpeg_file)

    assert await controller.handle_selection(event) == UploadState.IDLE
    assert len(errors) == 1

    provider.set(make_classifier((0.6, 0.4)))

    assert await controller.handle_selection(event) == UploadState.RESULT_FAKE
    assert len(errors) == 1


@pytest.mark.slow
def test_predict_script(temp_dir, make_image, scripted_checkpoint, monkeypatch):
    """The command-line host writes one result per input file."""
    import predict

    photo = temp_dir / "photo.png"
    photo.write_bytes(make_image((300, 300), "PNG", "white"))
    animation = temp_dir / "animation.gif"
    animation.write_bytes(make_image((32, 32), "GIF", "white"))
    config_path = temp_dir / "config.yaml"
    config = Config()
    config.inference.device = "cpu"
    config.save_yaml(config_path)
    output_path = temp_dir / "results.json"

    monkeypatch.setattr(
        sys,
        "argv",
        [
            "predict.py",
            "--config", str(config_path),
            "--checkpoint", str(scripted_checkpoint),
            "--input", str(photo), str(animation),
            "--output", str(output_path),
        ],
    )
    predict.main()

    with open(output_path, encoding="utf-8") as f:
        results = json.load(f)["results"]

    assert [r["state"] for r in results] == ["result_real", "idle"]
    assert results[0]["error"] is None
    assert [r["label"] for r in results] == ["real", None]
    assert "select" in results[1]["error"]
