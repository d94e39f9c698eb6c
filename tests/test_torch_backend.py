"""
Parity tests for the torch backend. Skipped automatically when torch is unavailable.
"""

from __future__ import annotations

import numpy as np
import pytest

torch = pytest.importorskip("torch")

from gaborscene import Backend, ConditionIterator, GaborSceneConfig, MTFCorrectionEngine  # noqa: E402
from gaborscene.photoreceptors import ExcitationPredictor  # noqa: E402
from gaborscene.torch import TorchExcitationPredictor, TorchMTFCorrectionEngine  # noqa: E402


def test_torch_correction_matches_numpy():
    rng = np.random.default_rng(0)
    cube = rng.random((8, 9, 5)) + 0.5
    gains = rng.random(5)

    expected, expected_info = MTFCorrectionEngine(gains).correct(cube, diagnostics=True)
    result, info = TorchMTFCorrectionEngine(gains, device="cpu").correct(cube, diagnostics=True)

    np.testing.assert_allclose(result, expected, rtol=1e-12)
    np.testing.assert_allclose(info.contrast_achieved, expected_info.contrast_achieved, rtol=1e-10)


def test_torch_correction_empty_profile_passthrough():
    cube = np.ones((2, 2, 3))
    result, info = TorchMTFCorrectionEngine(None).correct(cube)
    assert result is cube
    assert info is None


def test_torch_predictor_matches_numpy():
    rng = np.random.default_rng(1)
    params = {"T_cones": rng.random((3, 6)), "S": (400, 10, 6)}
    image = rng.random((4, 5, 6))

    expected, expected_cal = ExcitationPredictor(params).predict(image)
    result, cal = TorchExcitationPredictor(params, device="cpu").predict(image)

    np.testing.assert_allclose(result, expected, rtol=1e-12)
    np.testing.assert_array_equal(cal, expected_cal)


def test_torch_backend_pipeline(settings_grid, reference_grid, cones, builder, nominal):
    config = GaborSceneConfig(
        nominal_width_m=nominal[0],
        nominal_fov_deg=nominal[1],
        backend=Backend.TORCH,
        device="cpu",
    )
    results = ConditionIterator(config, cones, builder).process(settings_grid, reference_grid)
    assert len(results) == 4
    assert all(result.relative_error <= 1e-5 for _, result in results.items())
