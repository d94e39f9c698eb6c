"""
MTF correction and excitation prediction implemented with torch tensors.

Both classes accept and return numpy arrays so they can stand in for the
numpy implementations inside the pipeline.
"""

from __future__ import annotations

from typing import Mapping, Optional, Tuple, Union

import numpy as np
import torch

from gaborscene.core.config import MTFLengthPolicy
from gaborscene.optics.mtf import GainProfile, MTFCorrectionEngine, MTFDiagnostics
from gaborscene.photoreceptors.excitation import ExcitationPredictor, ReceptorSensitivity
from gaborscene.torch.common import ensure_tensor, resolve_device, to_numpy


def _plane_contrasts(cube: torch.Tensor) -> torch.Tensor:
    flat = cube.reshape(-1, cube.shape[-1])
    lo = flat.min(dim=0).values
    hi = flat.max(dim=0).values
    return (hi - lo) / (hi + lo)


class TorchMTFCorrectionEngine(MTFCorrectionEngine):
    """Per-wavelength contrast gain evaluated on a torch device."""

    def __init__(
        self,
        gains: GainProfile = None,
        length_policy: MTFLengthPolicy = MTFLengthPolicy.IGNORE,
        device: Optional[Union[str, torch.device]] = None,
        dtype: torch.dtype = torch.float64,
    ) -> None:
        super().__init__(gains, length_policy)
        self.device = resolve_device(device)
        self.dtype = dtype

    def correct(
        self,
        cube: np.ndarray,
        wavelengths: Optional[np.ndarray] = None,
        diagnostics: bool = False,
    ) -> Tuple[np.ndarray, Optional[MTFDiagnostics]]:
        if cube.ndim != 3:
            raise ValueError(f"Expected H×W×N cube, got shape {cube.shape}")

        gains = self.gains_for(cube.shape[2])
        if gains is None:
            return cube, None

        cube_t = ensure_tensor(cube, self.device, self.dtype)
        gains_t = ensure_tensor(gains, self.device, self.dtype)

        with torch.no_grad():
            means = cube_t.mean(dim=(0, 1), keepdim=True)
            corrected_t = (cube_t - means) * gains_t.view(1, 1, -1) + means

            info = None
            if diagnostics:
                uncorrected = _plane_contrasts(cube_t)
                wave = (
                    np.arange(cube.shape[2], dtype=float)
                    if wavelengths is None
                    else np.asarray(wavelengths, dtype=float).ravel()
                )
                info = MTFDiagnostics(
                    wavelengths=wave,
                    gains=gains,
                    contrast_uncorrected=to_numpy(uncorrected),
                    contrast_predicted=to_numpy(uncorrected * gains_t),
                    contrast_achieved=to_numpy(_plane_contrasts(corrected_t)),
                )

        return to_numpy(corrected_t), info


class TorchExcitationPredictor(ExcitationPredictor):
    """Receptor projection evaluated on a torch device."""

    def __init__(
        self,
        receptors: Union[ReceptorSensitivity, Mapping[str, object]],
        device: Optional[Union[str, torch.device]] = None,
        dtype: torch.dtype = torch.float64,
    ) -> None:
        super().__init__(receptors)
        self.device = resolve_device(device)
        self.dtype = dtype
        self._matrix = ensure_tensor(self.receptors.matrix, self.device, self.dtype)

    def predict(self, image: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        if image.ndim != 3:
            raise ValueError(f"Expected H×W×K image, got shape {image.shape}")
        n_rows, n_cols, n_bands = image.shape
        if n_bands != self.receptors.n_wavelengths:
            raise ValueError(
                f"Image has {n_bands} bands, receptors expect {self.receptors.n_wavelengths}"
            )

        cal = image.reshape(n_rows * n_cols, n_bands).T
        with torch.no_grad():
            cal_t = ensure_tensor(cal, self.device, self.dtype)
            excitations = self._matrix @ cal_t
        return to_numpy(excitations), cal
