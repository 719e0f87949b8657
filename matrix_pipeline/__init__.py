"""
Matrix Pipeline - builds aligned item x user action matrices from raw event logs.

Simple functions for each pipeline stage, plus the orchestrator that chains them.
"""

from matrix_pipeline.handler import (
    run_item_index_stage,
    run_user_vectors_stage,
    run_matrix_stage,
    run_reconcile_stage,
    STAGES,
)
from matrix_pipeline.indexer import IdIndexer, InMemoryIndexStorage
from matrix_pipeline.orchestrator import MatrixSetBuilder
from matrix_pipeline.schemas import PrepareOptions

__all__ = [
    "run_item_index_stage",
    "run_user_vectors_stage",
    "run_matrix_stage",
    "run_reconcile_stage",
    "STAGES",
    "IdIndexer",
    "InMemoryIndexStorage",
    "MatrixSetBuilder",
    "PrepareOptions",
]
