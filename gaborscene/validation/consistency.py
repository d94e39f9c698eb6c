"""
Consistency checks gating downstream use of simulated scenes.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np

from gaborscene.core.errors import DimensionMismatch, ValidationError
from gaborscene.scene.base import SpectralScene

logger = logging.getLogger(__name__)


def relative_error(predicted: np.ndarray, reference: np.ndarray) -> float:
    """
    Maximum elementwise relative error ``|predicted - reference| / |reference|``.

    Exactly matching entries count as zero error, including zero references.
    """

    predicted = np.asarray(predicted, dtype=float)
    reference = np.asarray(reference, dtype=float)
    if predicted.shape != reference.shape:
        raise ValueError(
            f"Predicted excitations {predicted.shape} and reference {reference.shape} differ in shape"
        )
    if predicted.size == 0:
        return 0.0

    diff = np.abs(predicted - reference)
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = np.where(diff == 0, 0.0, diff / np.abs(reference))
    return float(np.max(ratio))


class ConsistencyValidator:
    """Compare predicted excitations against reference excitations."""

    def __init__(self, tolerance: float = 1e-5) -> None:
        if not tolerance > 0:
            raise ValueError(f"Tolerance {tolerance} must be positive")
        self.tolerance = tolerance

    def check(
        self,
        predicted: np.ndarray,
        reference: np.ndarray,
        index: Optional[Tuple[int, int]] = None,
    ) -> float:
        """Return the observed relative error, raising ValidationError above tolerance."""

        error = relative_error(predicted, reference)
        if not error <= self.tolerance:
            raise ValidationError(error, self.tolerance, index)
        logger.debug("Excitation check passed: relative error %.3e", error)
        return error


def _relative_deviation(nominal: float, realized: float) -> float:
    return abs(nominal - realized) / nominal


def check_scene_dimensions(
    scene: SpectralScene,
    nominal_width_m: float,
    nominal_fov_deg: float,
    tolerance: float = 0.01,
    index: Optional[Tuple[int, int]] = None,
) -> Tuple[float, float]:
    """
    Verify the scene's horizontal size against the nominal stimulus size.

    Returns the (meters, degrees) relative deviations.
    """

    width_dev = _relative_deviation(nominal_width_m, scene.width_m)
    if not width_dev <= tolerance:
        raise DimensionMismatch("meters", nominal_width_m, scene.width_m, width_dev, tolerance, index)

    fov_dev = _relative_deviation(nominal_fov_deg, scene.fov_deg)
    if not fov_dev <= tolerance:
        raise DimensionMismatch("degrees", nominal_fov_deg, scene.fov_deg, fov_dev, tolerance, index)

    return width_dev, fov_dev
