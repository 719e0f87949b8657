"""
Pipeline execution state management.
Tracks which state of the matrix-building state machine a run is in.
"""

import threading
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from common.constants import PATHS
from common.utils import setup_logging

logger = setup_logging(__name__, PATHS["log_file"])


class PipelineState(str, Enum):
    """States of one matrix-set build, in execution order."""
    IDLE = "idle"
    INDEXING_PRIMARY = "indexing_primary"
    VECTORS_PRIMARY = "vectors_primary"
    MATRIX_PRIMARY = "matrix_primary"
    INDEXING_SECONDARY = "indexing_secondary"
    VECTORS_SECONDARY = "vectors_secondary"
    MATRIX_SECONDARY = "matrix_secondary"
    RECONCILE = "reconcile"
    DONE = "done"
    FAILED = "failed"


SEQUENCE = [
    PipelineState.IDLE,
    PipelineState.INDEXING_PRIMARY,
    PipelineState.VECTORS_PRIMARY,
    PipelineState.MATRIX_PRIMARY,
    PipelineState.INDEXING_SECONDARY,
    PipelineState.VECTORS_SECONDARY,
    PipelineState.MATRIX_SECONDARY,
    PipelineState.RECONCILE,
    PipelineState.DONE,
]


class PipelineStateTracker:
    """
    Records state transitions of one run.
    Only forward moves along SEQUENCE are allowed, plus a move to FAILED from any
    non-terminal state.
    """

    def __init__(self, pipeline_id: Optional[str] = None):
        self.lock = threading.Lock()
        self.pipeline_id = pipeline_id
        self.state = PipelineState.IDLE
        self.start_time: Optional[datetime] = None
        self.history: List[Dict[str, Any]] = []
        self.failed_stage: Optional[PipelineState] = None
        self.error_message: Optional[str] = None

    def transition(self, state: PipelineState) -> None:
        with self.lock:
            if state == PipelineState.FAILED:
                raise ValueError("Use fail() to move to FAILED")
            if self.state in (PipelineState.DONE, PipelineState.FAILED):
                raise ValueError(f"Pipeline already finished in state {self.state.value}")
            if SEQUENCE.index(state) != SEQUENCE.index(self.state) + 1:
                raise ValueError(f"Invalid transition {self.state.value} → {state.value}")

            if self.start_time is None:
                self.start_time = datetime.now()
            self._record(state)
            logger.info(f"Pipeline {self.pipeline_id}: {state.value}")

    def fail(self, error_msg: str) -> None:
        with self.lock:
            if self.state in (PipelineState.DONE, PipelineState.FAILED):
                raise ValueError(f"Pipeline already finished in state {self.state.value}")
            self.failed_stage = self.state
            self.error_message = error_msg
            self._record(PipelineState.FAILED)
            logger.error(f"Pipeline {self.pipeline_id} failed in {self.failed_stage.value}: {error_msg}")

    def _record(self, state: PipelineState) -> None:
        elapsed = 0.0
        if self.start_time:
            elapsed = (datetime.now() - self.start_time).total_seconds()
        self.state = state
        self.history.append({"state": state.value, "elapsed_seconds": round(elapsed, 3)})

    @property
    def visited(self) -> List[PipelineState]:
        with self.lock:
            return [PipelineState(h["state"]) for h in self.history]

    def is_finished(self) -> bool:
        with self.lock:
            return self.state in (PipelineState.DONE, PipelineState.FAILED)

    def get_status(self) -> Dict[str, Any]:
        """Get current pipeline status as dictionary."""
        with self.lock:
            return {
                "pipeline_id": self.pipeline_id,
                "state": self.state.value,
                "failed_stage": self.failed_stage.value if self.failed_stage else None,
                "history": list(self.history),
                "error_message": self.error_message,
            }
