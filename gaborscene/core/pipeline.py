"""
Main gaborscene processing pipeline.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from gaborscene.core.config import Backend, ConditionState, GaborSceneConfig
from gaborscene.core.results import (
    ConditionIndex,
    ConditionResult,
    ResultAggregate,
    SettingsImageCollection,
    iter_conditions,
)
from gaborscene.optics.mtf import MTFCorrectionEngine, MTFDiagnostics
from gaborscene.photoreceptors.excitation import ExcitationPredictor, ReceptorSensitivity
from gaborscene.scene.base import SceneBuilder, SpectralScene
from gaborscene.validation.consistency import ConsistencyValidator, check_scene_dimensions
from gaborscene.visualization.observers import LoggingObserver, PipelineObserver

logger = logging.getLogger(__name__)

ReferenceGrid = Sequence[Sequence[np.ndarray]]
SettingsInput = Union[SettingsImageCollection, Sequence[Sequence[np.ndarray]]]


class ConditionIterator:
    """
    Convert a grid of gabor settings images into checked spectral scenes.

    Per condition, in row-major (phase shift, contrast point) order:
        1. Scene construction (external scene builder)
        2. MTF correction (optional)
        3. Scene dimension check
        4. Excitation prediction and reference check
        5. Commit to the result aggregate

    Any failed check aborts the whole run.
    """

    def __init__(
        self,
        config: GaborSceneConfig,
        receptors: Union[ReceptorSensitivity, Mapping[str, object]],
        scene_builder: SceneBuilder,
        observers: Optional[Sequence[PipelineObserver]] = None,
    ) -> None:
        self.config = config
        self.config.validate()
        self.scene_builder = scene_builder

        if observers is None:
            observers = [LoggingObserver()] if self.config.verbose else []
        self.observers: List[PipelineObserver] = list(observers)
        self._observer_lock = threading.Lock()

        self._init_components(receptors)

        self.states: Dict[ConditionIndex, ConditionState] = {}
        self._state_lock = threading.Lock()

        logger.info("Initializing gaborscene condition iterator")
        logger.info("  Receptors: %s (%d classes)", self.receptors.variant.value, self.receptors.n_classes)
        logger.info("  MTF correction: %s", "on" if self.mtf_engine.active else "off")
        logger.info("  Backend: %s, workers: %d", self.config.backend.value, self.config.max_workers)

    def _init_components(self, receptors: Union[ReceptorSensitivity, Mapping[str, object]]) -> None:
        config = self.config

        if config.backend == Backend.TORCH:
            from gaborscene.torch.correction import (
                TorchExcitationPredictor,
                TorchMTFCorrectionEngine,
            )

            self.mtf_engine: MTFCorrectionEngine = TorchMTFCorrectionEngine(
                config.mtf_gains, config.mtf_length_policy, device=config.device
            )
            self.predictor: ExcitationPredictor = TorchExcitationPredictor(
                receptors, device=config.device
            )
        elif config.backend == Backend.NUMPY:
            self.mtf_engine = MTFCorrectionEngine(config.mtf_gains, config.mtf_length_policy)
            self.predictor = ExcitationPredictor(receptors)
        else:
            raise ValueError(f"Unknown backend: {config.backend}")

        self.receptors = self.predictor.receptors
        self.validator = ConsistencyValidator(config.excitation_tolerance)
        self.corrected_validator = (
            ConsistencyValidator(config.corrected_tolerance)
            if config.corrected_tolerance is not None
            else None
        )

    def process(
        self,
        settings_images: SettingsInput,
        reference_excitations: ReferenceGrid,
    ) -> ResultAggregate:
        """
        Run every condition and return the filled result aggregate.

        Parameters
        ----------
        settings_images : SettingsImageCollection or nested sequence
            ``[phase_shift][contrast_point]`` settings images. Images are
            released from the collection as they are consumed.
        reference_excitations : nested sequence
            ``[phase_shift][contrast_point]`` reference excitations, each
            n_receptor_classes × n_pixels.
        """

        collection = (
            settings_images
            if isinstance(settings_images, SettingsImageCollection)
            else SettingsImageCollection.from_grid(settings_images)
        )
        shape = collection.shape
        self._check_reference_grid(reference_excitations, shape)

        logger.info(
            "Processing %d phase shifts × %d contrast points",
            shape[0],
            shape[1],
        )

        self.states = {index: ConditionState.NOT_STARTED for index in iter_conditions(shape)}
        aggregate = ResultAggregate(shape)

        if self.config.max_workers == 1:
            for index in iter_conditions(shape):
                self._run_condition(index, collection, reference_excitations, aggregate)
        else:
            self._run_parallel(collection, reference_excitations, aggregate)

        logger.info("Processing complete: %d conditions committed", len(aggregate))
        return aggregate

    def _run_parallel(
        self,
        collection: SettingsImageCollection,
        reference_excitations: ReferenceGrid,
        aggregate: ResultAggregate,
    ) -> None:
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = [
                executor.submit(
                    self._run_condition, index, collection, reference_excitations, aggregate
                )
                for index in iter_conditions(collection.shape)
            ]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in pending:
                future.cancel()

            failed = [future for future in done if future.exception() is not None]
            if failed:
                # Report the earliest condition in row-major order.
                first = min(failed, key=futures.index)
                raise first.exception()

    # ------------------------------------------------------------------
    # Individual pipeline stages
    # ------------------------------------------------------------------

    def _run_condition(
        self,
        index: ConditionIndex,
        collection: SettingsImageCollection,
        reference_excitations: ReferenceGrid,
        aggregate: ResultAggregate,
    ) -> None:
        try:
            scene = self._stage_build_scene(index, collection)
            scene, corrected, diagnostics = self._stage_correct(index, scene)
            self._stage_check_dimensions(index, scene)
            reference = np.asarray(
                reference_excitations[index.phase_shift][index.contrast_point], dtype=float
            )
            result = self._stage_validate(index, scene, reference, corrected, diagnostics)
            self._stage_commit(index, result, aggregate)
        except Exception:
            self._set_state(index, ConditionState.FAILED)
            logger.error("Condition %s failed", tuple(index))
            raise

    def _stage_build_scene(
        self,
        index: ConditionIndex,
        collection: SettingsImageCollection,
    ) -> SpectralScene:
        logger.debug("Condition %s, stage 1: scene construction", tuple(index))
        self._set_state(index, ConditionState.BUILDING_SCENE)

        settings = collection.take(index)
        scene = self.scene_builder(settings)
        del settings

        self._notify("on_scene_built", index, scene)
        return scene

    def _stage_correct(
        self,
        index: ConditionIndex,
        scene: SpectralScene,
    ) -> Tuple[SpectralScene, bool, Optional[MTFDiagnostics]]:
        if not self.mtf_engine.active:
            return scene, False, None

        logger.debug("Condition %s, stage 2: MTF correction", tuple(index))
        self._set_state(index, ConditionState.CORRECTING)

        corrected, diagnostics = self.mtf_engine.apply_to_scene(
            scene, diagnostics=self.config.collect_diagnostics or bool(self.observers)
        )
        if corrected is scene:
            return scene, False, None

        self._notify("on_mtf_corrected", index, scene, corrected, diagnostics)
        return corrected, True, diagnostics

    def _stage_check_dimensions(self, index: ConditionIndex, scene: SpectralScene) -> None:
        logger.debug("Condition %s, stage 3: dimension check", tuple(index))

        width_dev, fov_dev = check_scene_dimensions(
            scene,
            self.config.nominal_width_m,
            self.config.nominal_fov_deg,
            self.config.dimension_tolerance,
            index,
        )
        logger.debug(
            "Condition %s: width deviation %.3e, fov deviation %.3e",
            tuple(index),
            width_dev,
            fov_dev,
        )

    def _stage_validate(
        self,
        index: ConditionIndex,
        scene: SpectralScene,
        reference: np.ndarray,
        corrected: bool,
        diagnostics: Optional[MTFDiagnostics],
    ) -> ConditionResult:
        logger.debug("Condition %s, stage 4: excitation check", tuple(index))
        self._set_state(index, ConditionState.VALIDATING)

        image = self.predictor.radiance_image(scene)
        predicted, cal = self.predictor.predict(image)
        self._notify("on_excitations", index, predicted, reference)

        # A corrected scene is expected to diverge from the reference.
        validator = self.corrected_validator if corrected else self.validator
        error = None
        if validator is not None:
            error = validator.check(predicted, reference, index)

        return ConditionResult(
            scene=scene,
            image=image,
            predicted_excitations=predicted,
            cal_image=cal,
            mtf_diagnostics=diagnostics if self.config.collect_diagnostics else None,
            relative_error=error,
        )

    def _stage_commit(
        self,
        index: ConditionIndex,
        result: ConditionResult,
        aggregate: ResultAggregate,
    ) -> None:
        logger.debug("Condition %s, stage 5: commit", tuple(index))
        aggregate.commit(index, result)
        self._set_state(index, ConditionState.COMMITTED)
        self._notify("on_condition_committed", index, result)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_state(self, index: ConditionIndex, state: ConditionState) -> None:
        with self._state_lock:
            self.states[index] = state

    def _notify(self, hook: str, *args) -> None:
        if not self.observers:
            return
        with self._observer_lock:
            for observer in self.observers:
                getattr(observer, hook)(*args)

    @staticmethod
    def _check_reference_grid(reference_excitations: ReferenceGrid, shape) -> None:
        if len(reference_excitations) != shape[0] or any(
            len(row) != shape[1] for row in reference_excitations
        ):
            raise ValueError(
                f"Reference excitations must form a {shape[0]}x{shape[1]} grid"
            )


def make_scene_from_image(
    settings_images: SettingsInput,
    reference_excitations: ReferenceGrid,
    receptors: Union[ReceptorSensitivity, Mapping[str, object]],
    scene_builder: SceneBuilder,
    nominal_width_m: float,
    nominal_fov_deg: float,
    mtf_gains: Optional[Union[Sequence[float], np.ndarray]] = None,
    verbose: bool = False,
) -> ResultAggregate:
    """
    Convenience wrapper for a single sequential run.
    """

    config = GaborSceneConfig(
        nominal_width_m=nominal_width_m,
        nominal_fov_deg=nominal_fov_deg,
        mtf_gains=mtf_gains,
        verbose=verbose,
    )

    iterator = ConditionIterator(config, receptors, scene_builder)
    return iterator.process(settings_images, reference_excitations)
