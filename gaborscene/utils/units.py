"""
Radiometric unit conversions between energy and photon (quanta) units.
"""

from __future__ import annotations

import numpy as np
from scipy import constants


def _wavelengths_m(wavelengths: np.ndarray, n_bands: int) -> np.ndarray:
    wave = np.asarray(wavelengths, dtype=float).ravel()
    if wave.size != n_bands:
        raise ValueError(
            f"Wavelength vector has {wave.size} entries but data has {n_bands} bands"
        )
    return wave * 1e-9


def energy_to_photons(energy: np.ndarray, wavelengths: np.ndarray) -> np.ndarray:
    """
    Convert spectral energy to photons.

    Parameters
    ----------
    energy : np.ndarray
        Spectral radiance in energy units, wavelength along the last axis.
    wavelengths : np.ndarray
        Wavelength samples in nm.
    """

    energy = np.asarray(energy, dtype=float)
    wave_m = _wavelengths_m(wavelengths, energy.shape[-1])
    return energy * wave_m / (constants.h * constants.c)


def photons_to_energy(photons: np.ndarray, wavelengths: np.ndarray) -> np.ndarray:
    """Convert photons to spectral energy; inverse of :func:`energy_to_photons`."""

    photons = np.asarray(photons, dtype=float)
    wave_m = _wavelengths_m(wavelengths, photons.shape[-1])
    return photons * (constants.h * constants.c) / wave_m
