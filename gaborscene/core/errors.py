"""
Exceptions raised by the scene conversion pipeline.

Both check failures are fatal: the inputs are deterministic, so the run is
aborted and the offending deviation is reported.
"""

from __future__ import annotations

from typing import Optional, Tuple


class GaborSceneError(Exception):
    """Base class for pipeline check failures."""


class DimensionMismatch(GaborSceneError):
    """The realized scene size deviates too far from the nominal stimulus size."""

    def __init__(
        self,
        axis: str,
        nominal: float,
        realized: float,
        deviation: float,
        tolerance: float,
        index: Optional[Tuple[int, int]] = None,
    ) -> None:
        self.axis = axis
        self.nominal = nominal
        self.realized = realized
        self.deviation = deviation
        self.tolerance = tolerance
        self.index = index

        where = f" for condition {tuple(index)}" if index is not None else ""
        super().__init__(
            f"Horizontal size in {axis} mismatch{where}: nominal {nominal:.6g}, "
            f"scene {realized:.6g}, relative deviation {deviation:.4%} "
            f"exceeds {tolerance:.4%}"
        )


class ValidationError(GaborSceneError):
    """Predicted excitations disagree with the reference excitations."""

    def __init__(
        self,
        relative_error: float,
        tolerance: float,
        index: Optional[Tuple[int, int]] = None,
    ) -> None:
        self.relative_error = relative_error
        self.tolerance = tolerance
        self.index = index

        where = f" for condition {tuple(index)}" if index is not None else ""
        super().__init__(
            f"Reference and scene excitations do not agree{where}: maximum "
            f"relative error {relative_error:.3e} exceeds tolerance {tolerance:.1e}"
        )
