"""
Reference scene builder: renders settings images through a spectral display.

The display is described by a gamma exponent, three primary spectra, an
optional ambient spectrum, pixel pitch and viewing distance. There is no
calibration here; settings map straight to :class:`SpectralScene` objects
with known geometry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from gaborscene.scene.base import SpectralScene
from gaborscene.utils.units import energy_to_photons

logger = logging.getLogger(__name__)

METERS_PER_INCH = 0.0254


@dataclass
class SpectralDisplay:
    """Display description used to render settings images."""

    wavelengths: np.ndarray  # nm
    primaries: np.ndarray  # n_wavelengths x 3, W/sr/m^2/nm at full drive
    gamma: float = 1.0
    ambient: Optional[np.ndarray] = None  # n_wavelengths, W/sr/m^2/nm
    dpi: float = 96.0
    viewing_distance: float = 0.5  # meters

    def __post_init__(self) -> None:
        self.wavelengths = np.asarray(self.wavelengths, dtype=float).ravel()
        self.primaries = np.asarray(self.primaries, dtype=float)
        if self.primaries.shape != (self.wavelengths.size, 3):
            raise ValueError(
                f"Expected primaries of shape ({self.wavelengths.size}, 3), "
                f"got {self.primaries.shape}"
            )
        if self.ambient is not None:
            self.ambient = np.asarray(self.ambient, dtype=float).ravel()
            if self.ambient.size != self.wavelengths.size:
                raise ValueError("Ambient spectrum must match the wavelength sampling")

        if not self.gamma > 0:
            raise ValueError(f"Gamma {self.gamma} must be positive")
        if not self.dpi > 0:
            raise ValueError(f"dpi {self.dpi} must be positive")
        if not self.viewing_distance > 0:
            raise ValueError(f"Viewing distance {self.viewing_distance} must be positive")

    @property
    def pixel_pitch(self) -> float:
        """Pixel size in meters."""

        return METERS_PER_INCH / self.dpi

    def settings_to_primary(self, settings: np.ndarray) -> np.ndarray:
        """Apply the display gamma to settings in [0, 1]."""

        return np.power(np.clip(settings, 0.0, 1.0), self.gamma)


class DisplaySceneBuilder:
    """
    Build spectral scenes from H×W×3 settings images.

    Instances are callable so they can be passed straight to the pipeline as
    the scene builder.
    """

    def __init__(self, display: SpectralDisplay) -> None:
        self.display = display

    def __call__(self, settings: np.ndarray) -> SpectralScene:
        return self.build(settings)

    def build(self, settings: np.ndarray, name: str = "gabor") -> SpectralScene:
        settings = np.asarray(settings, dtype=float)
        if settings.ndim != 3 or settings.shape[2] != 3:
            raise ValueError(f"Expected H×W×3 settings image, got shape {settings.shape}")
        if not np.isfinite(settings).all():
            raise ValueError("Settings image contains NaN or Inf values")

        display = self.display
        height, width, _ = settings.shape

        primary = display.settings_to_primary(settings)
        energy = np.dot(primary, display.primaries.T)
        if display.ambient is not None:
            energy = energy + display.ambient.reshape(1, 1, -1)
        photons = energy_to_photons(energy, display.wavelengths)

        width_m = width * display.pixel_pitch
        fov_deg = float(np.degrees(2.0 * np.arctan(width_m / (2.0 * display.viewing_distance))))

        logger.debug(
            "Built scene %s: %dx%d pixels, %d wavelengths, %.4g m, %.4g deg",
            name,
            height,
            width,
            display.wavelengths.size,
            width_m,
            fov_deg,
        )

        return SpectralScene(
            photons=photons,
            wavelengths=display.wavelengths,
            width_m=width_m,
            fov_deg=fov_deg,
            name=name,
        )
