"""
Upload handling for the Real/Fake Image Classifier.

File validation, downscaling, the observable upload state and the
controller that drives a selection through the inference pipeline.
"""

from .controller import StateController
from .downscaling import AssetReleasedError, Downscaler, ImageAsset
from .errors import (
    ImageDecodeFailed,
    InferenceFailed,
    ModelUnavailable,
    NoFileSelected,
    UnsupportedFileType,
    UploadError,
)
from .state import ScoreVector, UploadState, classify_scores
from .validation import FileSelectionEvent, FileValidator, SelectedFile


__all__ = [
    "AssetReleasedError",
    "Downscaler",
    "FileSelectionEvent",
    "FileValidator",
    "ImageAsset",
    "ImageDecodeFailed",
    "InferenceFailed",
    "ModelUnavailable",
    "NoFileSelected",
    "ScoreVector",
    "SelectedFile",
    "StateController",
    "UnsupportedFileType",
    "UploadError",
    "UploadState",
    "classify_scores",
]
