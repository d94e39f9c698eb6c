"""Shared fixtures: a small spectral display, receptors and gabor settings images."""

from __future__ import annotations

from typing import List

import numpy as np
import pytest

from gaborscene import DisplaySceneBuilder, ReceptorSensitivity, SpectralDisplay
from gaborscene.photoreceptors import image_to_cal_format

WAVELENGTHS = np.arange(400.0, 701.0, 10.0)
S = (400.0, 10.0, WAVELENGTHS.size)
HEIGHT, WIDTH = 12, 20


def _bump(center: float, width: float) -> np.ndarray:
    return np.exp(-0.5 * ((WAVELENGTHS - center) / width) ** 2)


def gabor_settings(contrast: float, phase: float, height: int = HEIGHT, width: int = WIDTH) -> np.ndarray:
    """Settings image of a vertical gabor around mid-gray."""

    y, x = np.mgrid[0:height, 0:width]
    envelope = np.exp(-(((x - width / 2) / (width / 4)) ** 2 + ((y - height / 2) / (height / 4)) ** 2))
    carrier = np.sin(2 * np.pi * x / 8.0 + phase)
    modulation = 0.5 + 0.5 * contrast * envelope * carrier
    direction = np.array([1.0, 0.8, 0.6])
    return np.clip(modulation[:, :, None] * direction[None, None, :], 0.0, 1.0)


@pytest.fixture
def display() -> SpectralDisplay:
    primaries = np.stack([_bump(610, 25), _bump(540, 30), _bump(460, 20)], axis=1) * 0.01
    return SpectralDisplay(
        wavelengths=WAVELENGTHS,
        primaries=primaries,
        gamma=2.2,
        ambient=np.full(WAVELENGTHS.size, 1e-5),
        dpi=100.0,
        viewing_distance=0.6,
    )


@pytest.fixture
def builder(display: SpectralDisplay) -> DisplaySceneBuilder:
    return DisplaySceneBuilder(display)


@pytest.fixture
def nominal(display: SpectralDisplay):
    width_m = WIDTH * 0.0254 / display.dpi
    fov_deg = float(np.degrees(2.0 * np.arctan(width_m / (2.0 * display.viewing_distance))))
    return width_m, fov_deg


@pytest.fixture
def cones() -> ReceptorSensitivity:
    matrix = np.stack([_bump(565, 40), _bump(535, 40), _bump(440, 25)])
    return ReceptorSensitivity(matrix=matrix, S=S)


@pytest.fixture
def settings_grid() -> List[List[np.ndarray]]:
    phases = (0.0, np.pi / 2)
    contrasts = (0.2, 0.8)
    return [[gabor_settings(c, p) for c in contrasts] for p in phases]


def reference_excitations(settings: np.ndarray, display: SpectralDisplay, receptors: ReceptorSensitivity) -> np.ndarray:
    """Excitations computed directly from the display, without a scene."""

    energy = np.dot(display.settings_to_primary(settings), display.primaries.T)
    if display.ambient is not None:
        energy = energy + display.ambient
    cal, _, _ = image_to_cal_format(energy * receptors.wavelength_step)
    return receptors.matrix @ cal


@pytest.fixture
def reference_grid(settings_grid, display, cones) -> List[List[np.ndarray]]:
    return [[reference_excitations(s, display, cones) for s in row] for row in settings_grid]


@pytest.fixture
def compute_reference(display, cones):
    return lambda settings: reference_excitations(settings, display, cones)
