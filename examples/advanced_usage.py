"""
Advanced gaborscene usage scenarios.
"""

from __future__ import annotations

import numpy as np

from basic_usage import (
    WAVELENGTHS,
    _nominal_size,
    gabor_settings,
    make_display,
    make_receptors,
    reference_excitations,
)
from gaborscene import (
    Backend,
    ConditionIterator,
    DimensionMismatch,
    DisplaySceneBuilder,
    GaborSceneConfig,
    SettingsImageCollection,
)


def example_streaming_collection():
    """Load settings images lazily so only the conditions in flight are in memory."""

    display = make_display()
    receptors = make_receptors()
    phases = np.linspace(0.0, np.pi, 4)
    contrasts = (0.02, 0.05, 0.1)

    def load(index):
        return gabor_settings(contrasts[index.contrast_point], phases[index.phase_shift])

    collection = SettingsImageCollection.from_loader((len(phases), len(contrasts)), load)
    references = [
        [reference_excitations(gabor_settings(c, p), display, receptors) for c in contrasts]
        for p in phases
    ]
    width_m, fov_deg = _nominal_size(display)
    config = GaborSceneConfig(nominal_width_m=width_m, nominal_fov_deg=fov_deg, max_workers=2)

    results = ConditionIterator(config, receptors, DisplaySceneBuilder(display)).process(collection, references)
    print(f"Streaming example: {len(results)} conditions, {collection.remaining()} images left")
    return results


def example_dimension_check():
    """A nominal size that disagrees with the display geometry aborts the run."""

    display = make_display()
    receptors = make_receptors()
    settings = [[gabor_settings(0.1, 0.0)]]
    references = [[reference_excitations(settings[0][0], display, receptors)]]
    width_m, fov_deg = _nominal_size(display)

    config = GaborSceneConfig(nominal_width_m=width_m * 1.05, nominal_fov_deg=fov_deg)
    try:
        ConditionIterator(config, receptors, DisplaySceneBuilder(display)).process(settings, references)
    except DimensionMismatch as error:
        print(f"Dimension check example: {error}")
        return error
    return None


def example_plot_diagnostics():
    """Collect the MTF and excitation figures (requires matplotlib)."""
    try:
        from gaborscene.visualization import MatplotlibObserver
        observer = MatplotlibObserver(wavelength_indices=(60, 85, 110))
    except ImportError:  # pragma: no cover - matplotlib optional
        print("matplotlib is not available; skipping plot example.")
        return None

    display = make_display()
    receptors = make_receptors()
    settings = [[gabor_settings(0.2, 0.0)]]
    references = [[reference_excitations(settings[0][0], display, receptors)]]
    width_m, fov_deg = _nominal_size(display)
    gains = np.interp(WAVELENGTHS, [380.0, 780.0], [0.5, 0.9])

    config = GaborSceneConfig(nominal_width_m=width_m, nominal_fov_deg=fov_deg, mtf_gains=gains)
    ConditionIterator(config, receptors, DisplaySceneBuilder(display), observers=[observer]).process(
        settings, references
    )
    print(f"Plot example: {len(observer.figures)} figures")
    return observer


def example_torch_backend():
    """Run correction and excitation prediction with PyTorch (requires torch)."""
    try:
        import torch
    except ImportError:  # pragma: no cover - torch optional
        print("PyTorch is not available; skipping torch example.")
        return None

    display = make_display()
    receptors = make_receptors()
    settings = [[gabor_settings(0.1, 0.0), gabor_settings(0.2, 0.0)]]
    references = [[reference_excitations(s, display, receptors) for s in settings[0]]]
    width_m, fov_deg = _nominal_size(display)

    device = "cuda" if torch.cuda.is_available() else "cpu"
    config = GaborSceneConfig(
        nominal_width_m=width_m,
        nominal_fov_deg=fov_deg,
        backend=Backend.TORCH,
        device=device,
    )
    results = ConditionIterator(config, receptors, DisplaySceneBuilder(display)).process(settings, references)
    print(f"Torch example on {device}: {len(results)} conditions")
    return results


if __name__ == "__main__":
    print("Running gaborscene advanced examples...")
    example_streaming_collection()
    example_dimension_check()
    example_plot_diagnostics()
    example_torch_backend()
