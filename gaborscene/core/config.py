"""
Configuration primitives for gaborscene.

Defines enums for backends, MTF handling policies, receptor variants and
condition states, and a dataclass collecting configurable parameters.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

import numpy as np


class Backend(Enum):
    """Array backend used for correction and excitation prediction."""

    NUMPY = "numpy"
    TORCH = "torch"  # Optional, requires PyTorch


class MTFLengthPolicy(Enum):
    """What to do when the MTF gain profile does not match the wavelengths."""

    IGNORE = "ignore"  # Warn and skip the correction
    REJECT = "reject"  # Raise ValueError


class ReceptorVariant(Enum):
    """Which sensitivity matrix the excitations are computed with."""

    EXTENDED = "T_receptors"  # Cones plus extra classes (e.g. melanopsin)
    CONES_ONLY = "T_cones"


class ConditionState(Enum):
    """Progress of a single (phase shift, contrast point) condition."""

    NOT_STARTED = "not_started"
    BUILDING_SCENE = "building_scene"
    CORRECTING = "correcting"
    VALIDATING = "validating"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class GaborSceneConfig:
    """
    Complete configuration for converting gabor settings images to scenes.

    Nominal sizes have no default because they describe the stimulus being
    simulated; everything else defaults to the reference behavior.
    """

    # Declared stimulus size
    nominal_width_m: float
    nominal_fov_deg: float

    # MTF correction
    mtf_gains: Optional[Union[Sequence[float], np.ndarray]] = None
    mtf_length_policy: MTFLengthPolicy = MTFLengthPolicy.IGNORE
    collect_diagnostics: bool = False

    # Checks
    excitation_tolerance: float = 1e-5  # relative
    dimension_tolerance: float = 0.01  # relative
    corrected_tolerance: Optional[float] = None  # None skips the check under MTF

    # Execution
    max_workers: int = 1
    backend: Backend = Backend.NUMPY
    device: str = "cpu"  # torch backend only
    verbose: bool = False

    @property
    def mtf_active(self) -> bool:
        """True when a non-empty gain profile was supplied."""

        return self.mtf_gains is not None and np.size(self.mtf_gains) > 0

    def validate(self) -> None:
        """Validate configuration parameters."""

        if not self.nominal_width_m > 0:
            raise ValueError(f"Nominal width {self.nominal_width_m} m must be positive")

        if not (0 < self.nominal_fov_deg < 180):
            raise ValueError(f"Nominal field of view {self.nominal_fov_deg} out of range (0, 180)")

        if not self.excitation_tolerance > 0:
            raise ValueError(f"Excitation tolerance {self.excitation_tolerance} must be positive")

        if not (0 < self.dimension_tolerance < 1):
            raise ValueError(f"Dimension tolerance {self.dimension_tolerance} out of range (0, 1)")

        if self.corrected_tolerance is not None and not self.corrected_tolerance > 0:
            raise ValueError(f"Corrected tolerance {self.corrected_tolerance} must be positive")

        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")

        if self.mtf_active:
            gains = np.asarray(self.mtf_gains, dtype=float)
            if not np.isfinite(gains).all() or np.any(gains < 0):
                raise ValueError("MTF gains must be finite and non-negative")
