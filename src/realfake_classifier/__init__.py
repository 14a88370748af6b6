"""
Real/Fake Image Classifier

Upload-to-inference pipeline for a binary fake/real image classifier:
file validation, downscaling, tensor construction with explicit buffer
release, single-shot inference and an observable upload state machine.
"""

__version__ = "0.1.0"
__author__ = "Real/Fake Classifier Team"

from .upload import *
from .inference import *
from .utils import Config, get_default_config, get_logger, setup_logging
