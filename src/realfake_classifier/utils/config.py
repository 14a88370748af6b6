"""
Configuration management for the Real/Fake Image Classifier.

This module provides centralized configuration for the upload-to-inference
pipeline, including file validation, downscaling, tensor preprocessing,
inference settings, state controller behaviour and logging.
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path

import torch
import yaml


@dataclass
class UploadConfig:
    """Configuration for file validation and downscaling."""

    # Validation
    accepted_mime_types: list[str] = field(
        default_factory=lambda: ["image/jpeg", "image/jpg", "image/png"]
    )

    # Downscaling (bounds peak memory before any tensor work)
    downscale_size: tuple[int, int] = (256, 256)  # (width, height)
    jpeg_quality: int = 100
    resample: str = "lanczos"  # lanczos, bicubic, bilinear, nearest


@dataclass
class PreprocessingConfig:
    """Configuration for tensor construction."""

    # Model input spatial size (height, width)
    target_size: tuple[int, int] = (256, 256)
    channels: int = 3


@dataclass
class InferenceConfig:
    """Configuration for model inference."""

    # Model loading
    checkpoint_path: str | None = None

    # Inference settings
    device: str = "auto"  # auto, cpu, cuda
    input_layout: str = "nhwc"  # nhwc, nchw

    # Output format
    class_names: list[str] = field(default_factory=lambda: ["fake", "real"])


@dataclass
class ControllerConfig:
    """Configuration for the upload state controller."""

    # Drop completions from runs superseded by a newer upload
    discard_stale_runs: bool = False


@dataclass
class LoggingConfig:
    """Configuration for logging and monitoring."""

    # Logging level
    log_level: str = "INFO"

    # Experiment tracking
    use_tensorboard: bool = False
    experiment_name: str | None = None

    # Logging directory (no file logging when unset)
    log_dir: str | None = None


@dataclass
class SystemConfig:
    """System-wide configuration."""

    # Paths
    project_root: str = ""


@dataclass
class Config:
    """Main configuration class that combines all sub-configurations."""

    upload: UploadConfig = field(default_factory=UploadConfig)
    preprocessing: PreprocessingConfig = field(default_factory=PreprocessingConfig)
    inference: InferenceConfig = field(default_factory=InferenceConfig)
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    system: SystemConfig = field(default_factory=SystemConfig)

    def __post_init__(self):
        """Post-initialization processing."""
        # Set automatic device detection
        if self.inference.device == "auto":
            self.inference.device = "cuda" if torch.cuda.is_available() else "cpu"

        self._normalize_sizes()
        self._resolve_paths()

    def _normalize_sizes(self):
        """YAML round-trips tuples as lists; keep sizes as tuples."""
        self.upload.downscale_size = tuple(self.upload.downscale_size)
        self.preprocessing.target_size = tuple(self.preprocessing.target_size)

    def _resolve_paths(self):
        """Convert relative paths to absolute paths."""
        if self.system.project_root:
            root = Path(self.system.project_root)
        else:
            root = Path.cwd()

        if self.logging.log_dir:
            self.logging.log_dir = str(root / self.logging.log_dir)

        if self.inference.checkpoint_path:
            self.inference.checkpoint_path = str(root / self.inference.checkpoint_path)

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            Config instance loaded from YAML
        """
        with open(config_path, encoding="utf-8") as f:
            config_dict = yaml.safe_load(f) or {}

        return cls.from_dict(config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """
        Create Config instance from dictionary.

        Args:
            config_dict: Dictionary containing configuration parameters

        Returns:
            Config instance
        """
        config = cls()

        # Update each section
        for section_name, section_data in config_dict.items():
            if hasattr(config, section_name) and isinstance(section_data, dict):
                section_config = getattr(config, section_name)
                for key, value in section_data.items():
                    if hasattr(section_config, key):
                        setattr(section_config, key, value)

        config._normalize_sizes()
        config._resolve_paths()
        return config

    def to_dict(self) -> dict:
        """
        Convert configuration to dictionary.

        Returns:
            Dictionary representation of the configuration
        """
        return {
            "upload": asdict(self.upload),
            "preprocessing": asdict(self.preprocessing),
            "inference": asdict(self.inference),
            "controller": asdict(self.controller),
            "logging": asdict(self.logging),
            "system": asdict(self.system),
        }

    def save_yaml(self, config_path: str | Path) -> None:
        """
        Save configuration to YAML file.

        Args:
            config_path: Path where to save the YAML configuration
        """
        config_dict = self.to_dict()

        # safe_load cannot read python tuples back
        config_dict["upload"]["downscale_size"] = list(self.upload.downscale_size)
        config_dict["preprocessing"]["target_size"] = list(
            self.preprocessing.target_size
        )

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(config_dict, f, default_flow_style=False, indent=2)

    def update_from_args(self, args: dict) -> None:
        """
        Update configuration from command-line arguments.

        Args:
            args: Dictionary of arguments; nested keys use "section.param"
        """
        for key, value in args.items():
            if value is None:
                continue
            if "." in key:
                # Handle nested keys like "upload.jpeg_quality"
                section, param = key.split(".", 1)
                if hasattr(self, section):
                    section_config = getattr(self, section)
                    if hasattr(section_config, param):
                        setattr(section_config, param, value)
            else:
                if hasattr(self, key):
                    setattr(self, key, value)

        self._normalize_sizes()
        self._resolve_paths()


def get_default_config() -> Config:
    """
    Get the default configuration.

    Returns:
        Default configuration for the 256x256 fake/real classifier
    """
    return Config()
