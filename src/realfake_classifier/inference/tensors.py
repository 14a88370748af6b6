"""
Tensor backend for the inference pipeline.

Numeric buffers may live on the GPU, so every buffer created by the
pipeline is wrapped in a ``TensorHandle`` and must be released explicitly
through its backend. The backend keeps a count of live buffers, which the
pipeline stages rely on to stay within their buffer budget and which tests
use to detect leaks.
"""

from abc import ABC, abstractmethod
from typing import Any

import torch
import torchvision.transforms.functional as TF
from torchvision.transforms import InterpolationMode

from ..upload.downscaling import ImageAsset
from ..utils.helpers import get_device


class TensorReleasedError(RuntimeError):
    """Raised when a tensor handle is used or released after release."""

    pass


class TensorHandle:
    """
    Ownership wrapper around a single backend buffer.

    Whoever holds the handle is responsible for releasing it exactly once.
    """

    def __init__(self, tensor: Any, backend: "TensorBackend", label: str = "tensor"):
        self._tensor = tensor
        self._backend = backend
        self.label = label

    @property
    def released(self) -> bool:
        return self._tensor is None

    @property
    def tensor(self) -> Any:
        if self._tensor is None:
            raise TensorReleasedError(f"{self.label} has already been released")
        return self._tensor

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(self.tensor.shape)

    def release(self) -> None:
        self._backend.dispose(self)

    def __enter__(self) -> "TensorHandle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self.released:
            self.release()

    def __repr__(self) -> str:
        if self.released:
            return f"TensorHandle({self.label}, released)"
        return f"TensorHandle({self.label}, shape={self.shape})"


class TensorBackend(ABC):
    """
    Abstract tensor backend with live-buffer accounting.

    Subclasses create buffers through ``_track`` and never free them on
    their own; buffers are freed only through ``dispose``.
    """

    def __init__(self):
        self.live_buffers = 0
        self.total_allocations = 0

    def _track(self, tensor: Any, label: str) -> TensorHandle:
        self.live_buffers += 1
        self.total_allocations += 1
        return TensorHandle(tensor, self, label)

    def dispose(self, handle: TensorHandle) -> None:
        """
        Release a buffer.

        Args:
            handle: Handle created by this backend

        Raises:
            TensorReleasedError: If the handle was already released
        """
        if handle._backend is not self:
            raise ValueError(f"{handle.label} belongs to a different backend")
        if handle.released:
            raise TensorReleasedError(f"{handle.label} released twice")

        self._free(handle._tensor)
        handle._tensor = None
        self.live_buffers -= 1

    def _free(self, tensor: Any) -> None:
        """Backend-specific release hook; dropping the handle's reference is enough by default."""
        pass

    def adopt(self, tensor: Any, label: str = "output") -> TensorHandle:
        """Take ownership of a buffer produced outside the backend."""
        return self._track(tensor, label)

    @abstractmethod
    def from_pixels(self, asset: ImageAsset, channels: int = 3) -> TensorHandle:
        """Decode an image asset into an (H, W, channels) uint8 pixel tensor."""
        pass

    @abstractmethod
    def resize_bilinear(self, pixels: TensorHandle, size: tuple[int, int]) -> TensorHandle:
        """Bilinearly resize an (H, W, C) tensor to ``size`` as float32."""
        pass

    @abstractmethod
    def expand_dims(self, tensor: TensorHandle, axis: int = 0) -> TensorHandle:
        """Insert a dimension of size 1 at ``axis``."""
        pass

    @abstractmethod
    def read(self, tensor: TensorHandle) -> list:
        """Copy a tensor's values to nested Python lists."""
        pass


class TorchTensorBackend(TensorBackend):
    """PyTorch implementation of the tensor backend."""

    def __init__(self, device: str | torch.device | None = None):
        """
        Initialize the backend.

        Args:
            device: Device for created tensors ("auto" or None picks CUDA when available)
        """
        super().__init__()
        if isinstance(device, torch.device):
            self.device = device
        else:
            self.device = get_device(device)

    def from_pixels(self, asset: ImageAsset, channels: int = 3) -> TensorHandle:
        image = asset.open()
        if channels == 1:
            image = image.convert("L")
        # pil_to_tensor yields (C, H, W); keep channels last like the model contract
        pixels = TF.pil_to_tensor(image).permute(1, 2, 0).contiguous()
        return self._track(pixels.to(self.device), "pixels")

    def resize_bilinear(self, pixels: TensorHandle, size: tuple[int, int]) -> TensorHandle:
        chw = pixels.tensor.permute(2, 0, 1).to(torch.float32)
        resized = TF.resize(
            chw,
            list(size),
            interpolation=InterpolationMode.BILINEAR,
            antialias=False,
        )
        return self._track(resized.permute(1, 2, 0).contiguous(), "resized")

    def expand_dims(self, tensor: TensorHandle, axis: int = 0) -> TensorHandle:
        return self._track(tensor.tensor.unsqueeze(axis), "batched")

    def adopt(self, tensor: Any, label: str = "output") -> TensorHandle:
        if isinstance(tensor, dict):
            # Models returning {"logits": ..., "features": ...}
            tensor = tensor["logits"]
        return self._track(torch.as_tensor(tensor), label)

    def read(self, tensor: TensorHandle) -> list:
        return tensor.tensor.detach().cpu().tolist()
