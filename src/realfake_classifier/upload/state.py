"""
Externally observable state of an upload.

Defines the ``UploadState`` values exposed to the UI layer, the immutable
``ScoreVector`` produced by the classifier, and the rule mapping scores to
a result state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np


class UploadState(Enum):
    """Where the current upload is."""

    IDLE = "idle"
    VALIDATING_OR_LOADING = "validating_or_loading"
    AWAITING_CLASSIFIER = "awaiting_classifier"
    RESULT_FAKE = "result_fake"
    RESULT_REAL = "result_real"

    @property
    def is_result(self) -> bool:
        return self in (UploadState.RESULT_FAKE, UploadState.RESULT_REAL)


@dataclass(frozen=True)
class ScoreVector:
    """
    Raw classifier scores ``(fake_score, real_score)``.

    Index 0 is the "fake" score and index 1 the "real" score, matching the
    model output contract.
    """

    fake_score: float
    real_score: float

    @classmethod
    def from_output(cls, output: Any) -> "ScoreVector":
        """
        Build a score vector from a raw 1x2 model output.

        Args:
            output: Nested sequence or array of shape (1, 2)

        Returns:
            Score vector from the first (only) row

        Raises:
            ValueError: If the output is not a 1x2 numeric array
        """
        values = np.asarray(output, dtype=np.float64)
        if values.shape != (1, 2):
            raise ValueError(f"Expected model output of shape (1, 2), got {values.shape}")

        fake_score, real_score = values[0]
        return cls(float(fake_score), float(real_score))

    def as_tuple(self) -> tuple[float, float]:
        return (self.fake_score, self.real_score)

    def __iter__(self):
        return iter(self.as_tuple())

    def __getitem__(self, index: int) -> float:
        return self.as_tuple()[index]

    def __len__(self) -> int:
        return 2


def classify_scores(scores: ScoreVector) -> UploadState:
    """
    Map a score vector to its result state.

    Only a strictly greater fake score yields ``RESULT_FAKE``; ties go to
    ``RESULT_REAL``.

    Args:
        scores: Classifier scores

    Returns:
        ``UploadState.RESULT_FAKE`` or ``UploadState.RESULT_REAL``
    """
    if scores.fake_score > scores.real_score:
        return UploadState.RESULT_FAKE
    return UploadState.RESULT_REAL
