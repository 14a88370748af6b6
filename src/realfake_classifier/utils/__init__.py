"""
Utilities module for the Real/Fake Image Classifier

Common utilities for configuration, logging, and helper functions.
"""

from .config import *
from .helpers import *
from .logging import *
