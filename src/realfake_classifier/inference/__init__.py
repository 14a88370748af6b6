"""
Inference module for the Real/Fake Image Classifier

Tensor construction, buffer lifecycle, classifier handles and the
single-shot inference engine.
"""

from .classifier import ClassifierHandle, ClassifierProvider, ModelLoadError, TorchClassifier
from .engine import InferenceEngine
from .preprocessing import PreprocessingPipeline
from .tensors import TensorBackend, TensorHandle, TensorReleasedError, TorchTensorBackend


__all__ = [
    "ClassifierHandle",
    "ClassifierProvider",
    "InferenceEngine",
    "ModelLoadError",
    "PreprocessingPipeline",
    "TensorBackend",
    "TensorHandle",
    "TensorReleasedError",
    "TorchClassifier",
    "TorchTensorBackend",
]
