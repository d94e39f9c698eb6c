"""
Basic usage examples for gaborscene.
"""

from __future__ import annotations

import logging

import numpy as np

from gaborscene import (
    ConditionIterator,
    DisplaySceneBuilder,
    GaborSceneConfig,
    ReceptorSensitivity,
    SpectralDisplay,
    make_scene_from_image,
)
from gaborscene.photoreceptors import image_to_cal_format

WAVELENGTHS = np.arange(380.0, 781.0, 2.0)
S = (380.0, 2.0, WAVELENGTHS.size)


def _bump(center: float, width: float) -> np.ndarray:
    return np.exp(-0.5 * ((WAVELENGTHS - center) / width) ** 2)


def make_display() -> SpectralDisplay:
    primaries = np.stack([_bump(615, 20), _bump(545, 30), _bump(455, 15)], axis=1) * 0.005
    return SpectralDisplay(wavelengths=WAVELENGTHS, primaries=primaries, gamma=2.2, dpi=110.0, viewing_distance=1.0)


def make_receptors() -> ReceptorSensitivity:
    return ReceptorSensitivity.from_mapping(
        {"T_cones": np.stack([_bump(565, 45), _bump(535, 40), _bump(440, 25)]), "S": S}
    )


def gabor_settings(contrast: float, phase: float, size: int = 128) -> np.ndarray:
    y, x = np.mgrid[0:size, 0:size]
    envelope = np.exp(-(((x - size / 2) ** 2 + (y - size / 2) ** 2) / (2 * (size / 6) ** 2)))
    modulation = 0.5 + 0.5 * contrast * envelope * np.sin(2 * np.pi * x / 16.0 + phase)
    return np.repeat(modulation[:, :, None], 3, axis=2)


def reference_excitations(settings, display, receptors) -> np.ndarray:
    energy = np.dot(display.settings_to_primary(settings), display.primaries.T)
    cal, _, _ = image_to_cal_format(energy * receptors.wavelength_step)
    return receptors.matrix @ cal


def _inputs(display, receptors):
    phases = (0.0, np.pi / 2, np.pi)
    contrasts = (0.05, 0.1, 0.2)
    settings = [[gabor_settings(c, p) for c in contrasts] for p in phases]
    references = [[reference_excitations(s, display, receptors) for s in row] for row in settings]
    return settings, references


def _nominal_size(display: SpectralDisplay, n_cols: int = 128):
    width_m = n_cols * display.pixel_pitch
    fov_deg = float(np.degrees(2.0 * np.arctan(width_m / (2.0 * display.viewing_distance))))
    return width_m, fov_deg


def example_simple():
    """Check a 3×3 grid of gabors without MTF correction."""

    display = make_display()
    receptors = make_receptors()
    settings, references = _inputs(display, receptors)
    width_m, fov_deg = _nominal_size(display)

    results = make_scene_from_image(
        settings,
        references,
        receptors,
        DisplaySceneBuilder(display),
        nominal_width_m=width_m,
        nominal_fov_deg=fov_deg,
        verbose=True,
    )
    worst = max(result.relative_error for _, result in results.items())
    print(f"Simple example: {len(results)} conditions, worst relative error {worst:.2e}")
    return results


def example_with_mtf():
    """Attenuate contrast per wavelength and report the achieved contrast."""

    display = make_display()
    receptors = make_receptors()
    settings, references = _inputs(display, receptors)
    width_m, fov_deg = _nominal_size(display)

    gains = np.interp(WAVELENGTHS, [380.0, 550.0, 780.0], [0.6, 0.9, 0.7])
    config = GaborSceneConfig(
        nominal_width_m=width_m,
        nominal_fov_deg=fov_deg,
        mtf_gains=gains,
        collect_diagnostics=True,
        max_workers=3,
    )
    results = ConditionIterator(config, receptors, DisplaySceneBuilder(display)).process(settings, references)

    diagnostics = results[0, 2].mtf_diagnostics
    print(
        "MTF example: contrast at 550 nm "
        f"{diagnostics.contrast_uncorrected[85]:.4f} -> {diagnostics.contrast_achieved[85]:.4f}"
    )
    return results


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print("Running gaborscene basic examples...")
    example_simple()
    example_with_mtf()
