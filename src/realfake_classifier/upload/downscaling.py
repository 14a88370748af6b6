"""
Downscaling of validated uploads.

Shrinks every accepted image to the canonical downscale size before any
tensor work happens, so peak memory stays bounded no matter how large the
uploaded file is. The result is an ``ImageAsset``: a JPEG-encoded,
decodable image owned by the run that created it.
"""

import asyncio
import io
from concurrent.futures import Executor

from PIL import Image, UnidentifiedImageError

from ..utils.config import UploadConfig
from ..utils.logging import get_logger
from .errors import ImageDecodeFailed
from .validation import SelectedFile


RESAMPLING_FILTERS = {
    "lanczos": Image.Resampling.LANCZOS,
    "bicubic": Image.Resampling.BICUBIC,
    "bilinear": Image.Resampling.BILINEAR,
    "nearest": Image.Resampling.NEAREST,
}


class AssetReleasedError(RuntimeError):
    """Raised when an image asset is used after it was released."""

    pass


class ImageAsset:
    """
    Opaque handle to a downscaled, displayable image.

    The asset owns its encoded bytes until ``release()`` is called; it can
    also be used as a context manager that releases on exit.
    """

    def __init__(self, data: bytes, width: int, height: int, mime_type: str = "image/jpeg"):
        self._data: bytes | None = data
        self.width = width
        self.height = height
        self.mime_type = mime_type

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def data(self) -> bytes:
        if self._data is None:
            raise AssetReleasedError("Image asset has already been released")
        return self._data

    def open(self) -> Image.Image:
        """
        Decode the asset into a fully loaded PIL image.

        Raises:
            ImageDecodeFailed: If the encoded data cannot be decoded
        """
        try:
            with Image.open(io.BytesIO(self.data)) as image:
                return image.convert("RGB")
        except (UnidentifiedImageError, OSError) as e:
            raise ImageDecodeFailed() from e

    def release(self) -> None:
        self._data = None

    def __enter__(self) -> "ImageAsset":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

    def __repr__(self) -> str:
        state = "released" if self.released else f"{len(self._data)} bytes"
        return f"ImageAsset({self.width}x{self.height}, {self.mime_type}, {state})"


class Downscaler:
    """Resizes validated uploads to the canonical downscale size."""

    def __init__(self, config: UploadConfig | None = None, executor: Executor | None = None):
        """
        Initialize the downscaler.

        Args:
            config: Upload configuration (defaults when None)
            executor: Executor for decode/encode work; the running loop's
                default executor when None
        """
        self.config = config or UploadConfig()
        self.executor = executor
        self.logger = get_logger()

        resample = self.config.resample.lower()
        if resample not in RESAMPLING_FILTERS:
            raise ValueError(f"Unsupported resampling filter: {self.config.resample}")
        self.resample = RESAMPLING_FILTERS[resample]

        width, height = self.config.downscale_size
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid downscale size: {self.config.downscale_size}")
        self.size = (int(width), int(height))

    async def downscale(self, file: SelectedFile) -> ImageAsset:
        """
        Downscale a validated file without blocking the event loop.

        Args:
            file: Validated file

        Returns:
            Image asset of exactly the canonical size

        Raises:
            ImageDecodeFailed: If the file data is not a decodable image
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self.downscale_sync, file)

    def downscale_sync(self, file: SelectedFile) -> ImageAsset:
        """Blocking implementation of ``downscale``."""
        try:
            with Image.open(io.BytesIO(file.data)) as image:
                original_size = image.size
                rgb = image.convert("RGB")
        except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
            self.logger.warning(f"Could not decode {file.name}: {e}")
            raise ImageDecodeFailed() from e

        resized = rgb.resize(self.size, self.resample)

        buffer = io.BytesIO()
        resized.save(buffer, format="JPEG", quality=self.config.jpeg_quality)

        self.logger.debug(
            f"Downscaled {file.name} from {original_size[0]}x{original_size[1]} "
            f"to {self.size[0]}x{self.size[1]}"
        )
        return ImageAsset(buffer.getvalue(), *resized.size)
