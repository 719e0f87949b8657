"""
Matrix set orchestrator.

Runs indexing → user vectors → sampling/transpose for the primary and then the
secondary action stream, checks that both matrices share the same user count,
and only then publishes the artifacts. Any failing stage moves the run to
FAILED, skips the remaining stages, and discards everything staged so far.
"""

import os
import shutil
import uuid
from datetime import datetime
from typing import Optional

from common.constants import ARTIFACTS, PATHS
from common.logging import log_matrix_set_summary
from common.utils import setup_logging
from matrix_pipeline import handler
from matrix_pipeline.data_models import ActionMatrix, MatrixSet
from matrix_pipeline.results import StageResult
from matrix_pipeline.schemas import PrepareOptions
from matrix_pipeline.state import PipelineState, PipelineStateTracker

logger = setup_logging(__name__, PATHS["log_file"])

STREAM_STATES = {
    "primary": (PipelineState.INDEXING_PRIMARY, PipelineState.VECTORS_PRIMARY, PipelineState.MATRIX_PRIMARY),
    "secondary": (PipelineState.INDEXING_SECONDARY, PipelineState.VECTORS_SECONDARY, PipelineState.MATRIX_SECONDARY),
}


class MatrixSetBuilder:
    """
    Builds the primary/secondary MatrixSet for one run.
    A builder runs once; create a new one for another run.
    """

    def __init__(self, options: PrepareOptions, pipeline_id: Optional[str] = None):
        self.options = options
        self.pipeline_id = pipeline_id or f"run_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"
        self.tracker = PipelineStateTracker(self.pipeline_id)
        self.matrix_set: Optional[MatrixSet] = None

    @property
    def state(self) -> PipelineState:
        return self.tracker.state

    def build(self, persist: bool = True) -> MatrixSet:
        """
        Run the whole state machine.
        Returns the MatrixSet on success; raises the first stage error otherwise.
        With persist=False nothing is written to disk.
        """
        staging_dir = None
        if persist:
            staging_dir = os.path.join(self.options.output_root, f"{ARTIFACTS['staging_prefix']}{self.pipeline_id}")

        logger.info(f"Pipeline {self.pipeline_id} started")
        result = self._build_stream("primary", staging_dir).and_then(
            lambda primary: self._build_stream("secondary", staging_dir).and_then(
                lambda secondary: self._enter(PipelineState.RECONCILE, handler.run_reconcile_stage, primary, secondary)
            )
        )
        if persist:
            result = result.and_then(lambda matrix_set: self._publish(matrix_set, staging_dir))

        if not result.ok:
            self.tracker.fail(str(result.error))
            if staging_dir is not None:
                shutil.rmtree(staging_dir, ignore_errors=True)
            raise result.error

        self.tracker.transition(PipelineState.DONE)
        self.matrix_set = result.value
        log_matrix_set_summary(logger, self.matrix_set)
        logger.info(f"✓ Pipeline {self.pipeline_id} completed")
        return self.matrix_set

    def _build_stream(self, stream: str, staging_dir: Optional[str]) -> StageResult[ActionMatrix]:
        indexing, vectors, matrix = STREAM_STATES[stream]
        return (
            self._enter(indexing, handler.run_item_index_stage, self.options, stream)
            .and_then(lambda indexed: self._enter(vectors, handler.run_user_vectors_stage, self.options, stream, indexed))
            .and_then(lambda built: self._enter(matrix, handler.run_matrix_stage, self.options, stream, built, staging_dir))
        )

    def _enter(self, state: PipelineState, run_stage, *args) -> StageResult:
        self.tracker.transition(state)
        return run_stage(*args)

    def _publish(self, matrix_set: MatrixSet, staging_dir: str) -> StageResult[MatrixSet]:
        def _run():
            handler.publish_artifacts(matrix_set, staging_dir, self.options.output_root)
            return matrix_set

        return StageResult.capture("publish", _run)
