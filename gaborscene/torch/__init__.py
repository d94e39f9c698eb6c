"""
GPU-capable gaborscene backend built on PyTorch.
"""

from gaborscene.torch.correction import TorchExcitationPredictor, TorchMTFCorrectionEngine

__all__ = ["TorchMTFCorrectionEngine", "TorchExcitationPredictor"]
