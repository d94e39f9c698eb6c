"""Optical stage utilities."""

from gaborscene.optics.mtf import (
    MTFCorrectionEngine,
    MTFDiagnostics,
    michelson_contrast,
    plane_contrasts,
)

__all__ = ["MTFCorrectionEngine", "MTFDiagnostics", "michelson_contrast", "plane_contrasts"]
