"""
Pipeline observers invoked at fixed checkpoints of each condition.

Observers only receive data; nothing they return is used by the pipeline.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np

from gaborscene.optics.mtf import MTFDiagnostics
from gaborscene.scene.base import SpectralScene

logger = logging.getLogger(__name__)


class PipelineObserver:
    """Base observer; every hook is a no-op."""

    def on_scene_built(self, index, scene: SpectralScene) -> None:
        pass

    def on_mtf_corrected(
        self,
        index,
        original: SpectralScene,
        corrected: SpectralScene,
        diagnostics: Optional[MTFDiagnostics],
    ) -> None:
        pass

    def on_excitations(self, index, predicted: np.ndarray, reference: np.ndarray) -> None:
        pass

    def on_condition_committed(self, index, result) -> None:
        pass


class LoggingObserver(PipelineObserver):
    """Report checkpoints through the logging module."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def on_scene_built(self, index, scene: SpectralScene) -> None:
        logger.log(
            self.level,
            "Condition %s: scene %s, %s, width %.4g m, fov %.4g deg",
            tuple(index),
            scene.name,
            scene.photons.shape,
            scene.width_m,
            scene.fov_deg,
        )

    def on_mtf_corrected(self, index, original, corrected, diagnostics) -> None:
        if diagnostics is None:
            logger.log(self.level, "Condition %s: MTF correction applied", tuple(index))
            return
        logger.log(
            self.level,
            "Condition %s: MTF correction applied, contrast %.4f -> %.4f (mean over wavelengths)",
            tuple(index),
            float(np.nanmean(diagnostics.contrast_uncorrected)),
            float(np.nanmean(diagnostics.contrast_achieved)),
        )

    def on_condition_committed(self, index, result) -> None:
        logger.log(
            self.level,
            "Condition %s: gabor image has been successfully calculated from the scene",
            tuple(index),
        )


class MatplotlibObserver(PipelineObserver):
    """
    Draw diagnostic figures with matplotlib.

    Figures are collected in ``self.figures``; callers decide whether to show
    or save them.
    """

    def __init__(
        self,
        wavelength_indices: Sequence[int] = (80, 100, 120),
        column_range: Optional[Sequence[int]] = None,
        max_points: int = 20000,
    ) -> None:
        import matplotlib.pyplot as plt

        self._plt = plt
        self.wavelength_indices = tuple(wavelength_indices)
        self.column_range = column_range
        self.max_points = max_points
        self.figures: List[object] = []

    def on_scene_built(self, index, scene: SpectralScene) -> None:
        plt = self._plt

        fig, ax = plt.subplots()
        image = ax.imshow(scene.photons.sum(axis=2), cmap="gray")
        fig.colorbar(image, ax=ax, label="Photons (summed over wavelength)")
        ax.set_title(f"Scene {scene.name} {tuple(index)}")
        ax.set_axis_off()
        self.figures.append(fig)

    def on_mtf_corrected(self, index, original, corrected, diagnostics) -> None:
        plt = self._plt

        if diagnostics is not None:
            fig, ax = plt.subplots()
            ax.scatter(diagnostics.contrast_predicted, diagnostics.contrast_achieved)
            ax.set_xlabel("Predicted modified contrast")
            ax.set_ylabel("Actual modified contrast")
            ax.set_aspect("equal", adjustable="datalim")
            ax.grid(True)
            ax.set_title(f"MTF correction {tuple(index)}")
            self.figures.append(fig)

        planes = [w for w in self.wavelength_indices if w < original.n_wavelengths]
        if not planes:
            return

        mid_row = original.photons.shape[0] // 2
        start, stop = self.column_range or (0, original.photons.shape[1])
        columns = np.arange(start, stop)

        fig, axes = plt.subplots(len(planes), 1, squeeze=False)
        for ax, w in zip(axes[:, 0], planes):
            ax.plot(columns, original.photons[mid_row, start:stop, w], "k", linewidth=2)
            ax.plot(columns, corrected.photons[mid_row, start:stop, w], "g", linewidth=1)
            ax.set_title(f"Wvl: {original.wavelengths[w]:.0f} nm")
            ax.set_xlim(start, stop - 1)
        self.figures.append(fig)

    def on_excitations(self, index, predicted: np.ndarray, reference: np.ndarray) -> None:
        plt = self._plt
        colors = ("r", "g", "b")

        step = max(1, predicted.shape[1] // self.max_points)
        fig, ax = plt.subplots()
        for row in range(predicted.shape[0]):
            ax.plot(
                reference[row, ::step],
                predicted[row, ::step],
                "+",
                color=colors[row % len(colors)],
            )
        ax.set_xlabel("Standard Cone Excitations")
        ax.set_ylabel("Scene Cone Excitations")
        ax.set_aspect("equal", adjustable="datalim")
        ax.set_title("Cone Excitations Comparison")
        self.figures.append(fig)

    def close(self) -> None:
        for fig in self.figures:
            self._plt.close(fig)
        self.figures.clear()
