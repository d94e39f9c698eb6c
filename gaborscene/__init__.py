"""Gabor stimulus scene simulation with MTF correction and excitation checks.

Turns pre-rendered contrast-gabor settings images into spectral scenes,
optionally applies a per-wavelength MTF contrast correction and verifies that
receptor excitations computed from the scenes match an independent reference.
"""

from gaborscene.core.config import (
    Backend,
    ConditionState,
    GaborSceneConfig,
    MTFLengthPolicy,
    ReceptorVariant,
)
from gaborscene.core.errors import DimensionMismatch, GaborSceneError, ValidationError
from gaborscene.core.pipeline import ConditionIterator, make_scene_from_image
from gaborscene.core.results import (
    ConditionIndex,
    ConditionResult,
    ResultAggregate,
    SettingsImageCollection,
)
from gaborscene.optics.mtf import MTFCorrectionEngine, michelson_contrast
from gaborscene.photoreceptors.excitation import ExcitationPredictor, ReceptorSensitivity
from gaborscene.scene import DisplaySceneBuilder, SpectralDisplay, SpectralScene
from gaborscene.validation.consistency import ConsistencyValidator

__all__ = [
    "Backend",
    "ConditionState",
    "GaborSceneConfig",
    "MTFLengthPolicy",
    "ReceptorVariant",
    "GaborSceneError",
    "DimensionMismatch",
    "ValidationError",
    "ConditionIterator",
    "make_scene_from_image",
    "ConditionIndex",
    "ConditionResult",
    "ResultAggregate",
    "SettingsImageCollection",
    "MTFCorrectionEngine",
    "michelson_contrast",
    "ExcitationPredictor",
    "ReceptorSensitivity",
    "SpectralDisplay",
    "DisplaySceneBuilder",
    "SpectralScene",
    "ConsistencyValidator",
]

try:  # Optional PyTorch acceleration
    from gaborscene.torch import TorchExcitationPredictor, TorchMTFCorrectionEngine  # type: ignore

    __all__.extend(["TorchMTFCorrectionEngine", "TorchExcitationPredictor"])
except ImportError:  # pragma: no cover - torch not installed
    TorchMTFCorrectionEngine = None  # type: ignore
    TorchExcitationPredictor = None  # type: ignore

__version__ = "1.0.0"
