"""Spectral scene model and scene builders."""

from gaborscene.scene.base import SceneBuilder, SpectralScene
from gaborscene.scene.display import DisplaySceneBuilder, SpectralDisplay

__all__ = ["SpectralScene", "SceneBuilder", "SpectralDisplay", "DisplaySceneBuilder"]
