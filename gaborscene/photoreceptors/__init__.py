"""Receptor sensitivities and excitation prediction."""

from gaborscene.photoreceptors.excitation import (
    ExcitationPredictor,
    ReceptorSensitivity,
    cal_format_to_image,
    image_to_cal_format,
)

__all__ = [
    "ExcitationPredictor",
    "ReceptorSensitivity",
    "image_to_cal_format",
    "cal_format_to_image",
]
