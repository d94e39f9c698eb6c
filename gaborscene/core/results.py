"""
Condition bookkeeping: indices, settings image collections and result storage.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from gaborscene.optics.mtf import MTFDiagnostics
from gaborscene.scene.base import SpectralScene


class ConditionIndex(NamedTuple):
    """One stimulus instance, identified by phase shift and contrast point."""

    phase_shift: int
    contrast_point: int


def iter_conditions(shape: Tuple[int, int]) -> Iterator[ConditionIndex]:
    """Yield condition indices in row-major (phase shift, contrast point) order."""

    n_phase_shifts, n_contrast_points = shape
    for ss in range(n_phase_shifts):
        for cc in range(n_contrast_points):
            yield ConditionIndex(ss, cc)


def _grid_shape(grid: Sequence[Sequence[object]]) -> Tuple[int, int]:
    n_rows = len(grid)
    if n_rows == 0:
        raise ValueError("Condition grid is empty")
    n_cols = len(grid[0])
    if n_cols == 0 or any(len(row) != n_cols for row in grid):
        raise ValueError("Condition grid must be rectangular and non-empty")
    return n_rows, n_cols


class SettingsImageCollection:
    """
    Grid of settings images indexed by condition.

    Images are handed out with :meth:`take`, which drops the collection's own
    reference so that only the conditions in flight hold image memory.
    """

    def __init__(
        self,
        shape: Tuple[int, int],
        loader: Optional[Callable[[ConditionIndex], np.ndarray]] = None,
    ) -> None:
        if shape[0] < 1 or shape[1] < 1:
            raise ValueError(f"Invalid condition grid shape {shape}")
        self.shape: Tuple[int, int] = (int(shape[0]), int(shape[1]))
        self._loader: Optional[Callable[[ConditionIndex], np.ndarray]] = loader
        self._images: Dict[ConditionIndex, np.ndarray] = {}
        self._taken: set = set()
        self._lock = threading.Lock()

    @classmethod
    def from_grid(cls, grid: Sequence[Sequence[np.ndarray]]) -> "SettingsImageCollection":
        """Wrap an in-memory nested sequence ``grid[phase_shift][contrast_point]``."""

        shape = _grid_shape(grid)
        collection = cls(shape)
        for index in iter_conditions(shape):
            collection._images[index] = grid[index.phase_shift][index.contrast_point]
        return collection

    @classmethod
    def from_loader(
        cls,
        shape: Tuple[int, int],
        loader: Callable[[ConditionIndex], np.ndarray],
    ) -> "SettingsImageCollection":
        """Load each image on demand, e.g. from disk."""

        return cls(shape, loader=loader)

    @property
    def n_phase_shifts(self) -> int:
        return self.shape[0]

    @property
    def n_contrast_points(self) -> int:
        return self.shape[1]

    def take(self, index: ConditionIndex) -> np.ndarray:
        """Hand over the image for ``index``; each image can be taken once."""

        index = ConditionIndex(*index)
        with self._lock:
            if not (0 <= index.phase_shift < self.shape[0] and 0 <= index.contrast_point < self.shape[1]):
                raise IndexError(f"Condition {tuple(index)} outside grid {self.shape}")
            if index in self._taken:
                raise KeyError(f"Settings image for condition {tuple(index)} was already taken")
            self._taken.add(index)
            image = self._images.pop(index, None)

        if image is None:
            if self._loader is None:
                raise KeyError(f"No settings image for condition {tuple(index)}")
            image = self._loader(index)
        return np.asarray(image)

    def remaining(self) -> int:
        """Number of images not yet handed out."""

        with self._lock:
            return self.shape[0] * self.shape[1] - len(self._taken)


@dataclass
class ConditionResult:
    """Artifacts produced for one condition."""

    scene: SpectralScene
    image: np.ndarray  # energy per wavelength band, H x W x n_wavelengths
    predicted_excitations: np.ndarray  # n_receptor_classes x n_pixels
    cal_image: np.ndarray  # n_wavelengths x n_pixels
    mtf_diagnostics: Optional[MTFDiagnostics] = None
    relative_error: Optional[float] = None


class ResultAggregate:
    """
    Results keyed by condition, one slot per index written exactly once.

    Inserts are lock-protected so concurrent condition workers can commit.
    """

    FIELDS = ("scene", "image", "predicted_excitations", "cal_image")

    def __init__(self, shape: Tuple[int, int]) -> None:
        self.shape: Tuple[int, int] = (int(shape[0]), int(shape[1]))
        self._slots: Dict[ConditionIndex, ConditionResult] = {}
        self._lock = threading.Lock()

    def commit(self, index: ConditionIndex, result: ConditionResult) -> None:
        index = ConditionIndex(*index)
        if not (0 <= index.phase_shift < self.shape[0] and 0 <= index.contrast_point < self.shape[1]):
            raise IndexError(f"Condition {tuple(index)} outside grid {self.shape}")
        with self._lock:
            if index in self._slots:
                raise RuntimeError(f"Condition {tuple(index)} already committed")
            self._slots[index] = result

    def __getitem__(self, index: Tuple[int, int]) -> ConditionResult:
        return self._slots[ConditionIndex(*index)]

    def __contains__(self, index: object) -> bool:
        return isinstance(index, tuple) and len(index) == 2 and ConditionIndex(*index) in self._slots

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[ConditionIndex]:
        for index in iter_conditions(self.shape):
            if index in self._slots:
                yield index

    def items(self) -> Iterator[Tuple[ConditionIndex, ConditionResult]]:
        for index in self:
            yield index, self._slots[index]

    @property
    def complete(self) -> bool:
        return len(self._slots) == self.shape[0] * self.shape[1]

    def as_grid(self, field: str) -> List[List[object]]:
        """
        Return ``grid[phase_shift][contrast_point]`` for one result field.

        Missing conditions are ``None``.
        """

        if field not in self.FIELDS and field not in ("mtf_diagnostics", "relative_error"):
            raise ValueError(f"Unknown result field: {field}")
        grid: List[List[object]] = []
        for ss in range(self.shape[0]):
            row = []
            for cc in range(self.shape[1]):
                result = self._slots.get(ConditionIndex(ss, cc))
                row.append(None if result is None else getattr(result, field))
            grid.append(row)
        return grid
