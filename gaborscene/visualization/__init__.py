"""Pluggable observers for pipeline checkpoints."""

from gaborscene.visualization.observers import (
    LoggingObserver,
    MatplotlibObserver,
    PipelineObserver,
)

__all__ = ["PipelineObserver", "LoggingObserver", "MatplotlibObserver"]
