"""
Type definitions for the action matrix pipeline.
Using TypedDicts for structured data with type hints.
"""

from typing import List, TypedDict

import pandas as pd
import scipy.sparse as sp

from matrix_pipeline.indexer import IdIndexer


class ItemIndexResult(TypedDict):
    """Output of the indexing stage for one action stream."""
    partitions: List[str]  # input files in partition order
    item_index: IdIndexer  # external item ID ↔ item_idx


class UserVectorsResult(TypedDict):
    """Output of the vector-building stage for one action stream."""
    item_index: IdIndexer
    user_vectors: pd.DataFrame  # columns: user_idx, item_idx, value - one row per distinct (user, item)
    user_index: IdIndexer  # external user ID ↔ user_idx, retained users only
    num_users: int  # retained users = declared user-space size
    malformed_rows: int  # rows skipped under the "skip" policy


class ActionMatrix(TypedDict):
    """Sparse item x user matrix built from one action stream."""
    name: str  # "primary" or "secondary"
    matrix: sp.csr_matrix  # Shape: (num_items, num_users)
    item_index: IdIndexer  # external item ID ↔ matrix row
    user_index: IdIndexer  # external user ID ↔ matrix column
    num_items: int
    num_users: int
    malformed_rows: int


class MatrixSet(TypedDict):
    """Primary and secondary action matrices sharing one user axis."""
    primary: ActionMatrix
    secondary: ActionMatrix
    num_users: int
