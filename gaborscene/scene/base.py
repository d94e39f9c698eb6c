"""
Spectral scene container shared by scene builders and the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable

import numpy as np

from gaborscene.utils.units import photons_to_energy


@dataclass(frozen=True, eq=False)
class SpectralScene:
    """
    Spectral radiance scene.

    ``photons`` is an H x W x n_wavelengths cube of photon radiance
    (q/s/sr/m^2/nm); the last axis follows ``wavelengths`` (nm).
    """

    photons: np.ndarray
    wavelengths: np.ndarray
    width_m: float
    fov_deg: float
    name: str = "scene"

    def __post_init__(self) -> None:
        photons = np.asarray(self.photons, dtype=float)
        wavelengths = np.asarray(self.wavelengths, dtype=float).ravel()
        if photons.ndim != 3:
            raise ValueError(f"Expected H×W×N photon cube, got shape {photons.shape}")
        if photons.shape[2] != wavelengths.size:
            raise ValueError(
                f"Photon cube has {photons.shape[2]} wavelength planes but "
                f"{wavelengths.size} wavelengths were given"
            )
        object.__setattr__(self, "photons", photons)
        object.__setattr__(self, "wavelengths", wavelengths)

    @property
    def n_wavelengths(self) -> int:
        return int(self.wavelengths.size)

    @property
    def wavelength_step(self) -> float:
        """Sampling interval in nm (1.0 for monochromatic scenes)."""

        if self.wavelengths.size < 2:
            return 1.0
        return float(self.wavelengths[1] - self.wavelengths[0])

    @property
    def energy(self) -> np.ndarray:
        """Spectral radiance in energy units per nm (W/sr/m^2/nm)."""

        return photons_to_energy(self.photons, self.wavelengths)

    def with_photons(self, photons: np.ndarray) -> "SpectralScene":
        """Return a copy of the scene carrying a replacement photon cube."""

        return replace(self, photons=photons)


SceneBuilder = Callable[[np.ndarray], SpectralScene]
