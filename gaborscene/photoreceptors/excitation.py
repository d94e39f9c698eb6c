"""Receptor excitations predicted from spectral radiance images."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Tuple, Union

import numpy as np

from gaborscene.core.config import ReceptorVariant
from gaborscene.scene.base import SpectralScene


def image_to_cal_format(image: np.ndarray) -> Tuple[np.ndarray, int, int]:
    """
    Flatten an H×W×K image into a K×(H·W) cal format matrix.

    Each column is one pixel; pixels are ordered row-major.
    """

    if image.ndim != 3:
        raise ValueError(f"Expected H×W×K image, got shape {image.shape}")
    n_rows, n_cols, n_bands = image.shape
    return image.reshape(n_rows * n_cols, n_bands).T, n_rows, n_cols


def cal_format_to_image(cal: np.ndarray, n_rows: int, n_cols: int) -> np.ndarray:
    """Inverse of :func:`image_to_cal_format`."""

    if cal.ndim != 2 or cal.shape[1] != n_rows * n_cols:
        raise ValueError(f"Cal format matrix {cal.shape} does not hold {n_rows}x{n_cols} pixels")
    return cal.T.reshape(n_rows, n_cols, cal.shape[0])


@dataclass(frozen=True, eq=False)
class ReceptorSensitivity:
    """
    Receptor sensitivity matrix with its wavelength sampling.

    ``S`` follows the (start nm, step nm, number of samples) convention.
    """

    matrix: np.ndarray  # n_receptor_classes x n_wavelengths
    S: Tuple[float, float, int]
    variant: ReceptorVariant = ReceptorVariant.CONES_ONLY

    def __post_init__(self) -> None:
        matrix = np.asarray(self.matrix, dtype=float)
        if matrix.ndim != 2:
            raise ValueError(f"Sensitivity matrix must be 2D, got shape {matrix.shape}")
        start, step, n_samples = self.S
        if int(n_samples) != matrix.shape[1]:
            raise ValueError(
                f"Sensitivity matrix has {matrix.shape[1]} columns but S declares {n_samples} samples"
            )
        if not step > 0:
            raise ValueError(f"Wavelength step {step} must be positive")
        object.__setattr__(self, "matrix", matrix)
        object.__setattr__(self, "S", (float(start), float(step), int(n_samples)))

    @classmethod
    def from_mapping(cls, params: Mapping[str, object]) -> "ReceptorSensitivity":
        """
        Select ``T_receptors`` when present, otherwise ``T_cones``.

        ``params`` must also carry the wavelength sampling ``S``.
        """

        if "S" not in params:
            raise KeyError("Receptor parameters must define wavelength sampling 'S'")
        for variant in (ReceptorVariant.EXTENDED, ReceptorVariant.CONES_ONLY):
            if variant.value in params:
                return cls(matrix=params[variant.value], S=tuple(params["S"]), variant=variant)
        raise KeyError("Receptor parameters define neither 'T_receptors' nor 'T_cones'")

    @property
    def n_classes(self) -> int:
        return int(self.matrix.shape[0])

    @property
    def n_wavelengths(self) -> int:
        return int(self.matrix.shape[1])

    @property
    def wavelength_step(self) -> float:
        return self.S[1]

    @property
    def wavelengths(self) -> np.ndarray:
        start, step, n_samples = self.S
        return start + step * np.arange(n_samples)


def resolve_receptors(
    receptors: Union[ReceptorSensitivity, Mapping[str, object]],
) -> ReceptorSensitivity:
    if isinstance(receptors, ReceptorSensitivity):
        return receptors
    return ReceptorSensitivity.from_mapping(receptors)


class ExcitationPredictor:
    """Project spectral images through a receptor sensitivity matrix."""

    def __init__(self, receptors: Union[ReceptorSensitivity, Mapping[str, object]]) -> None:
        self.receptors = resolve_receptors(receptors)

    def radiance_image(self, scene: SpectralScene) -> np.ndarray:
        """
        Scene energy converted from power per nm to power per wavelength band.
        """

        if scene.n_wavelengths != self.receptors.n_wavelengths:
            raise ValueError(
                f"Scene has {scene.n_wavelengths} wavelengths, receptors expect "
                f"{self.receptors.n_wavelengths}"
            )
        if not np.allclose(scene.wavelengths, self.receptors.wavelengths):
            start, step, n_samples = self.receptors.S
            raise ValueError(
                f"Scene sampled at {scene.wavelengths[0]:g}:{scene.wavelength_step:g} nm does not match "
                f"receptor sampling S=({start:g}, {step:g}, {n_samples})"
            )
        return scene.energy * self.receptors.wavelength_step

    def predict(self, image: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Predict excitations for an H×W×N image in power per band.

        Returns
        -------
        excitations, cal
            ``excitations`` is n_receptor_classes × n_pixels and ``cal`` the
            N × n_pixels cal format image it was computed from.
        """

        cal, _, _ = image_to_cal_format(image)
        if cal.shape[0] != self.receptors.n_wavelengths:
            raise ValueError(
                f"Image has {cal.shape[0]} bands, receptors expect {self.receptors.n_wavelengths}"
            )
        return self.receptors.matrix @ cal, cal
