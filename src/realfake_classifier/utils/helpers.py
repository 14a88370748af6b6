"""
Helper utilities for the Real/Fake Image Classifier.

This module provides common utility functions used throughout the
upload-to-inference pipeline.
"""

import mimetypes
from pathlib import Path

import torch


def get_device(device: str | None = None) -> torch.device:
    """
    Get the appropriate device for computation.

    Args:
        device: Device specification ("auto", "cpu", "cuda", or specific device)

    Returns:
        torch.device: Device object
    """
    if device is None or device == "auto":
        return torch.device("cuda" if torch.cuda.is_available() else "cpu")
    elif device == "cpu":
        return torch.device("cpu")
    elif device == "cuda":
        if not torch.cuda.is_available():
            raise RuntimeError("CUDA requested but not available")
        return torch.device("cuda")
    else:
        # Specific device like "cuda:0"
        return torch.device(device)


def guess_mime_type(path: str | Path) -> str:
    """
    Guess the MIME type of a file from its name.

    Args:
        path: File path

    Returns:
        MIME type, or an empty string when unknown
    """
    mime_type, _ = mimetypes.guess_type(str(path))
    return mime_type or ""


def format_time(seconds: float) -> str:
    """
    Format time duration in a human-readable format.

    Args:
        seconds: Time duration in seconds

    Returns:
        Formatted time string
    """
    if seconds < 1:
        return f"{seconds * 1000:.1f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    else:
        minutes = int(seconds // 60)
        secs = seconds % 60
        return f"{minutes}m {secs:.1f}s"


def format_size(size_bytes: int) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string
    """
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} PB"
