"""
Tests for the condition iterator.
"""

from __future__ import annotations

import numpy as np
import pytest

from gaborscene import (
    ConditionIndex,
    ConditionIterator,
    ConditionState,
    DimensionMismatch,
    GaborSceneConfig,
    MTFLengthPolicy,
    ResultAggregate,
    SettingsImageCollection,
    SpectralScene,
    ValidationError,
    make_scene_from_image,
)
from gaborscene.visualization import PipelineObserver


class RecordingObserver(PipelineObserver):
    def __init__(self) -> None:
        self.events = []

    def on_scene_built(self, index, scene):
        self.events.append(("scene", tuple(index)))

    def on_mtf_corrected(self, index, original, corrected, diagnostics):
        self.events.append(("mtf", tuple(index)))

    def on_excitations(self, index, predicted, reference):
        self.events.append(("excitations", tuple(index)))

    def on_condition_committed(self, index, result):
        self.events.append(("committed", tuple(index)))


def _config(nominal, **kwargs) -> GaborSceneConfig:
    return GaborSceneConfig(nominal_width_m=nominal[0], nominal_fov_deg=nominal[1], **kwargs)


def test_two_by_two_grid_without_correction(settings_grid, reference_grid, cones, builder, nominal) -> None:
    iterator = ConditionIterator(_config(nominal), cones, builder)
    results = iterator.process(settings_grid, reference_grid)

    assert isinstance(results, ResultAggregate)
    assert len(results) == 4
    assert results.complete
    assert list(results) == [(0, 0), (0, 1), (1, 0), (1, 1)]
    for index, result in results.items():
        assert result.scene.photons.size > 0
        assert result.image.shape == (12, 20, cones.n_wavelengths)
        assert result.predicted_excitations.shape == (3, 240)
        assert result.cal_image.shape == (cones.n_wavelengths, 240)
        assert result.relative_error is not None and result.relative_error <= 1e-5
        assert iterator.states[index] == ConditionState.COMMITTED


def test_without_correction_scene_is_untouched(settings_grid, reference_grid, cones, builder, nominal) -> None:
    expected = builder(settings_grid[1][0]).photons
    results = ConditionIterator(_config(nominal, mtf_gains=[]), cones, builder).process(
        settings_grid, reference_grid
    )
    np.testing.assert_array_equal(results[1, 0].scene.photons, expected)


def test_result_grids(settings_grid, reference_grid, cones, builder, nominal) -> None:
    results = ConditionIterator(_config(nominal), cones, builder).process(settings_grid, reference_grid)
    grid = results.as_grid("predicted_excitations")
    assert len(grid) == 2 and all(len(row) == 2 for row in grid)
    np.testing.assert_allclose(grid[0][1], reference_grid[0][1], rtol=1e-10)
    with pytest.raises(ValueError):
        results.as_grid("nope")


def test_dimension_mismatch_stops_before_excitations(cones, compute_reference, settings_grid) -> None:
    wavelengths = cones.wavelengths

    def wide_scene(settings):
        photons = np.ones(settings.shape[:2] + (wavelengths.size,))
        return SpectralScene(photons=photons, wavelengths=wavelengths, width_m=0.1015, fov_deg=5.0)

    observer = RecordingObserver()
    config = GaborSceneConfig(nominal_width_m=0.1, nominal_fov_deg=5.0)
    iterator = ConditionIterator(config, cones, wide_scene, observers=[observer])
    references = [[compute_reference(s) for s in row] for row in settings_grid]

    with pytest.raises(DimensionMismatch) as excinfo:
        iterator.process(settings_grid, references)

    assert excinfo.value.deviation == pytest.approx(0.015)
    assert excinfo.value.index == (0, 0)
    assert observer.events == [("scene", (0, 0))]
    assert iterator.states[ConditionIndex(0, 0)] == ConditionState.FAILED
    assert iterator.states[ConditionIndex(0, 1)] == ConditionState.NOT_STARTED


def test_nan_fov_fails_under_correction(settings_grid, reference_grid, cones, builder, nominal) -> None:
    def nan_fov_scene(settings):
        scene = builder(settings)
        return SpectralScene(
            photons=scene.photons, wavelengths=scene.wavelengths, width_m=scene.width_m, fov_deg=float("nan")
        )

    gains = np.full(cones.n_wavelengths, 0.5)
    iterator = ConditionIterator(_config(nominal, mtf_gains=gains), cones, nan_fov_scene)
    with pytest.raises(DimensionMismatch) as excinfo:
        iterator.process(settings_grid, reference_grid)

    assert excinfo.value.axis == "degrees"
    assert iterator.states[ConditionIndex(0, 0)] == ConditionState.FAILED


def test_shifted_scene_sampling_fails_under_correction(
    settings_grid, reference_grid, cones, builder, nominal
) -> None:
    def shifted_scene(settings):
        scene = builder(settings)
        return SpectralScene(
            photons=scene.photons, wavelengths=scene.wavelengths + 5.0, width_m=scene.width_m, fov_deg=scene.fov_deg
        )

    gains = np.full(cones.n_wavelengths, 0.5)
    iterator = ConditionIterator(_config(nominal, mtf_gains=gains), cones, shifted_scene)
    with pytest.raises(ValueError, match="does not match"):
        iterator.process(settings_grid, reference_grid)
    assert iterator.states[ConditionIndex(0, 0)] == ConditionState.FAILED


def test_reference_disagreement_aborts_run(settings_grid, reference_grid, cones, builder, nominal) -> None:
    reference_grid[0][1] = reference_grid[0][1].copy()
    reference_grid[0][1][2, 5] *= 0.5

    iterator = ConditionIterator(_config(nominal), cones, builder)
    with pytest.raises(ValidationError) as excinfo:
        iterator.process(settings_grid, reference_grid)

    assert excinfo.value.index == (0, 1)
    assert excinfo.value.relative_error == pytest.approx(1.0, rel=1e-6)
    assert iterator.states[ConditionIndex(0, 0)] == ConditionState.COMMITTED
    assert iterator.states[ConditionIndex(0, 1)] == ConditionState.FAILED
    assert iterator.states[ConditionIndex(1, 0)] == ConditionState.NOT_STARTED


def test_mtf_correction_skips_reference_check(settings_grid, reference_grid, cones, builder, nominal) -> None:
    gains = np.linspace(0.3, 0.9, cones.n_wavelengths)
    config = _config(nominal, mtf_gains=gains, collect_diagnostics=True)
    results = ConditionIterator(config, cones, builder).process(settings_grid, reference_grid)

    assert len(results) == 4
    uncorrected = builder(settings_grid[0][1]).photons
    corrected = results[0, 1].scene.photons
    np.testing.assert_allclose(corrected.mean(axis=(0, 1)), uncorrected.mean(axis=(0, 1)), rtol=1e-10)
    assert not np.allclose(corrected, uncorrected)
    assert results[0, 1].relative_error is None
    assert results[0, 1].mtf_diagnostics is not None
    np.testing.assert_allclose(results[0, 1].mtf_diagnostics.gains, gains)


def test_relaxed_check_under_correction(settings_grid, reference_grid, cones, builder, nominal) -> None:
    gains = np.full(cones.n_wavelengths, 0.5)

    loose = _config(nominal, mtf_gains=gains, corrected_tolerance=1e3)
    results = ConditionIterator(loose, cones, builder).process(settings_grid, reference_grid)
    assert all(result.relative_error is not None for _, result in results.items())

    strict = _config(nominal, mtf_gains=gains, corrected_tolerance=1e-6)
    with pytest.raises(ValidationError):
        ConditionIterator(strict, cones, builder).process(settings_grid, reference_grid)


def test_mismatched_gain_length_is_noop(settings_grid, reference_grid, cones, builder, nominal) -> None:
    config = _config(nominal, mtf_gains=[0.5, 0.5, 0.5])
    results = ConditionIterator(config, cones, builder).process(settings_grid, reference_grid)
    assert len(results) == 4
    np.testing.assert_array_equal(results[0, 0].scene.photons, builder(settings_grid[0][0]).photons)
    assert results[0, 0].relative_error <= 1e-5


def test_mismatched_gain_length_rejected(settings_grid, reference_grid, cones, builder, nominal) -> None:
    config = _config(nominal, mtf_gains=[0.5, 0.5], mtf_length_policy=MTFLengthPolicy.REJECT)
    with pytest.raises(ValueError):
        ConditionIterator(config, cones, builder).process(settings_grid, reference_grid)


def test_observer_checkpoints(settings_grid, reference_grid, cones, builder, nominal) -> None:
    observer = RecordingObserver()
    gains = np.full(cones.n_wavelengths, 0.8)
    config = _config(nominal, mtf_gains=gains)
    ConditionIterator(config, cones, builder, observers=[observer]).process(settings_grid, reference_grid)

    assert observer.events[:4] == [
        ("scene", (0, 0)),
        ("mtf", (0, 0)),
        ("excitations", (0, 0)),
        ("committed", (0, 0)),
    ]
    assert len(observer.events) == 16


def test_images_released_as_consumed(settings_grid, reference_grid, cones, builder, nominal) -> None:
    loaded = []

    def loader(index):
        loaded.append(tuple(index))
        return settings_grid[index.phase_shift][index.contrast_point]

    collection = SettingsImageCollection.from_loader((2, 2), loader)
    ConditionIterator(_config(nominal), cones, builder).process(collection, reference_grid)

    assert loaded == [(0, 0), (0, 1), (1, 0), (1, 1)]
    assert collection.remaining() == 0
    with pytest.raises(KeyError):
        collection.take((0, 0))


def test_parallel_matches_sequential(settings_grid, reference_grid, cones, builder, nominal) -> None:
    sequential = ConditionIterator(_config(nominal), cones, builder).process(settings_grid, reference_grid)
    parallel = ConditionIterator(_config(nominal, max_workers=3), cones, builder).process(
        settings_grid, reference_grid
    )

    assert len(parallel) == 4
    for index, result in sequential.items():
        np.testing.assert_allclose(parallel[index].predicted_excitations, result.predicted_excitations, rtol=1e-12)


def test_parallel_failure_propagates(settings_grid, reference_grid, cones, builder, nominal) -> None:
    reference_grid[1][1] = reference_grid[1][1] * 2.0
    iterator = ConditionIterator(_config(nominal, max_workers=2), cones, builder)
    with pytest.raises(ValidationError) as excinfo:
        iterator.process(settings_grid, reference_grid)
    assert excinfo.value.index == (1, 1)
    assert iterator.states[ConditionIndex(1, 1)] == ConditionState.FAILED


def test_extended_receptor_mapping(settings_grid, display, builder, nominal, cones) -> None:
    extra = np.exp(-0.5 * ((cones.wavelengths - 490.0) / 30.0) ** 2)
    params = {
        "T_cones": cones.matrix,
        "T_receptors": np.vstack([cones.matrix, extra]),
        "S": cones.S,
    }
    iterator = ConditionIterator(_config(nominal), params, builder)
    # Reference built from the same four-class matrix.
    references = []
    for row in settings_grid:
        ref_row = []
        for settings in row:
            image = iterator.predictor.radiance_image(builder(settings))
            ref_row.append(iterator.predictor.predict(image)[0])
        references.append(ref_row)

    results = iterator.process(settings_grid, references)
    assert results[0, 0].predicted_excitations.shape[0] == 4


def test_reference_grid_shape_checked(settings_grid, reference_grid, cones, builder, nominal) -> None:
    with pytest.raises(ValueError):
        ConditionIterator(_config(nominal), cones, builder).process(settings_grid, reference_grid[:1])


def test_aggregate_slots_written_once() -> None:
    aggregate = ResultAggregate((1, 1))
    aggregate.commit((0, 0), object())
    with pytest.raises(RuntimeError):
        aggregate.commit((0, 0), object())
    with pytest.raises(IndexError):
        aggregate.commit((1, 0), object())


def test_make_scene_from_image_helper(settings_grid, reference_grid, cones, builder, nominal) -> None:
    results = make_scene_from_image(
        settings_grid,
        reference_grid,
        cones,
        builder,
        nominal_width_m=nominal[0],
        nominal_fov_deg=nominal[1],
        verbose=True,
    )
    assert len(results) == 4


def test_valid_config(nominal) -> None:
    _config(nominal).validate()


@pytest.mark.parametrize(
    "overrides",
    [
        {"nominal_width_m": 0.0},
        {"nominal_fov_deg": 200.0},
        {"excitation_tolerance": -1.0},
        {"dimension_tolerance": 1.5},
        {"corrected_tolerance": 0.0},
        {"max_workers": 0},
        {"mtf_gains": [1.0, -0.5]},
    ],
)
def test_invalid_config(overrides) -> None:
    params = {"nominal_width_m": 0.1, "nominal_fov_deg": 5.0}
    params.update(overrides)
    with pytest.raises(ValueError):
        GaborSceneConfig(**params).validate()
