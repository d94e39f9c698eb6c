"""Excitation and geometry checks."""

from gaborscene.validation.consistency import (
    ConsistencyValidator,
    check_scene_dimensions,
    relative_error,
)

__all__ = ["ConsistencyValidator", "check_scene_dimensions", "relative_error"]
