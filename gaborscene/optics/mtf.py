"""
Per-wavelength MTF contrast correction for spectral radiance cubes.

The optical MTF is approximated, for gabor stimuli, by a scalar contrast gain
per wavelength. Each wavelength plane is rescaled about its own mean:

    out[..., w] = (cube[..., w] - mean_w) * gain[w] + mean_w

so the mean radiance of every plane is unchanged while its modulation is
scaled by ``gain[w]``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from gaborscene.core.config import MTFLengthPolicy
from gaborscene.scene.base import SpectralScene

logger = logging.getLogger(__name__)

GainProfile = Optional[Union[Sequence[float], np.ndarray]]


def michelson_contrast(field: np.ndarray) -> float:
    """
    Michelson contrast ``(max - min) / (max + min)`` over all elements.

    A field with ``max + min == 0`` gives NaN.
    """

    field = np.asarray(field, dtype=float)
    lo = float(np.min(field))
    hi = float(np.max(field))
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.divide(hi - lo, hi + lo))


def plane_contrasts(cube: np.ndarray) -> np.ndarray:
    """Michelson contrast of every wavelength plane of an H×W×N cube."""

    lo = np.min(cube, axis=(0, 1))
    hi = np.max(cube, axis=(0, 1))
    with np.errstate(divide="ignore", invalid="ignore"):
        return (hi - lo) / (hi + lo)


@dataclass
class MTFDiagnostics:
    """Per-wavelength contrast bookkeeping for one correction."""

    wavelengths: np.ndarray
    gains: np.ndarray
    contrast_uncorrected: np.ndarray
    contrast_predicted: np.ndarray  # uncorrected * gain
    contrast_achieved: np.ndarray

    def max_prediction_error(self) -> float:
        """Largest absolute gap between predicted and achieved contrast."""

        gap = np.abs(self.contrast_predicted - self.contrast_achieved)
        finite = gap[np.isfinite(gap)]
        return float(np.max(finite)) if finite.size else float("nan")


class MTFCorrectionEngine:
    """
    Apply a per-wavelength contrast gain while preserving plane means.

    The engine is stateless apart from its policy; the same instance can be
    shared by concurrent condition workers.
    """

    def __init__(
        self,
        gains: GainProfile = None,
        length_policy: MTFLengthPolicy = MTFLengthPolicy.IGNORE,
    ) -> None:
        self.gains = self._normalize_gains(gains)
        self.length_policy = length_policy

    @staticmethod
    def _normalize_gains(gains: GainProfile) -> Optional[np.ndarray]:
        if gains is None:
            return None
        gains_arr = np.asarray(gains, dtype=float).ravel()
        if gains_arr.size == 0:
            return None
        if not np.isfinite(gains_arr).all():
            raise ValueError("MTF gains contain NaN or Inf values")
        if np.any(gains_arr < 0):
            raise ValueError("MTF gains must be non-negative")
        return gains_arr

    @property
    def active(self) -> bool:
        return self.gains is not None

    def gains_for(self, n_wavelengths: int) -> Optional[np.ndarray]:
        """
        Gains to use for a cube with ``n_wavelengths`` planes.

        Returns None when no correction should be applied.
        """

        if self.gains is None:
            return None
        if self.gains.size == n_wavelengths:
            return self.gains

        message = (
            f"MTF gain profile has {self.gains.size} entries but the scene has "
            f"{n_wavelengths} wavelengths"
        )
        if self.length_policy == MTFLengthPolicy.REJECT:
            raise ValueError(message)
        logger.warning("%s; skipping MTF correction", message)
        return None

    def correct(
        self,
        cube: np.ndarray,
        wavelengths: Optional[np.ndarray] = None,
        diagnostics: bool = False,
    ) -> Tuple[np.ndarray, Optional[MTFDiagnostics]]:
        """
        Correct an H×W×N radiance cube.

        Parameters
        ----------
        cube : np.ndarray
            Spectral radiance, wavelength along the last axis.
        wavelengths : np.ndarray, optional
            Wavelength samples (nm), only used to label diagnostics.
        diagnostics : bool
            Compute per-wavelength contrast before and after correction.

        Returns
        -------
        corrected, diagnostics
            The input array itself when no correction applies, otherwise a
            new array. ``diagnostics`` is None unless requested and applied.
        """

        if cube.ndim != 3:
            raise ValueError(f"Expected H×W×N cube, got shape {cube.shape}")

        gains = self.gains_for(cube.shape[2])
        if gains is None:
            return cube, None

        means = np.mean(cube, axis=(0, 1), keepdims=True)
        corrected = (cube - means) * gains.reshape(1, 1, -1) + means

        info = None
        if diagnostics:
            uncorrected = plane_contrasts(cube)
            wave = (
                np.arange(cube.shape[2], dtype=float)
                if wavelengths is None
                else np.asarray(wavelengths, dtype=float).ravel()
            )
            info = MTFDiagnostics(
                wavelengths=wave,
                gains=gains,
                contrast_uncorrected=uncorrected,
                contrast_predicted=uncorrected * gains,
                contrast_achieved=plane_contrasts(corrected),
            )
            logger.debug(
                "MTF correction: max |predicted - achieved| contrast %.3e",
                info.max_prediction_error(),
            )

        return corrected, info

    def apply_to_scene(
        self,
        scene: SpectralScene,
        diagnostics: bool = False,
    ) -> Tuple[SpectralScene, Optional[MTFDiagnostics]]:
        """Correct a scene's photons; the scene is returned unchanged when inactive."""

        corrected, info = self.correct(scene.photons, scene.wavelengths, diagnostics)
        if corrected is scene.photons:
            return scene, info
        return scene.with_photons(corrected), info
