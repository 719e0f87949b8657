import numpy as np
import pandas as pd
import scipy.sparse as sp

from common.constants import PATHS
from common.utils import setup_logging
from matrix_pipeline.shards import run_sharded

logger = setup_logging(__name__, PATHS["log_file"])

CELL = ["item_idx", "user_idx"]


def partial_transpose(user_vectors: pd.DataFrame) -> pd.DataFrame:
    """Turn (user, item, value) rows into (item, user, value) cells, summing repeated cells."""
    return user_vectors.groupby(CELL, sort=False)["value"].sum().reset_index()


def merge_partials(partials: list[pd.DataFrame]) -> pd.DataFrame:
    """Merge partial transposes from several shards. Summation makes the merge order irrelevant."""
    if not partials:
        return pd.DataFrame({"item_idx": [], "user_idx": [], "value": []})
    return partial_transpose(pd.concat(partials, ignore_index=True))


def build_item_user_matrix(cells: pd.DataFrame, num_items: int, num_users: int) -> sp.csr_matrix:
    """Build sparse item x user matrix from (item_idx, user_idx, value) cells."""

    # uses item_idx and user_idx to place values in the correct item-user cell

    row = cells["item_idx"].to_numpy(dtype=np.int64)
    col = cells["user_idx"].to_numpy(dtype=np.int64)
    data = cells["value"].to_numpy(dtype=np.float64)

    matrix = sp.csr_matrix((data, (row, col)), shape=(num_items, num_users), dtype=np.float64)
    return matrix


def transpose_user_vectors(
    user_vectors: pd.DataFrame, num_items: int, num_users: int, num_shards: int = 1
) -> sp.csr_matrix:
    """
    Transpose user vectors into item vectors.
    Users are spread over num_shards by user_idx; every shard is transposed on its own
    and the partial results are merged with an additive combiner.
    """
    num_shards = max(1, num_shards)
    shard_of = user_vectors["user_idx"] % num_shards
    shards = [user_vectors[shard_of == s] for s in range(num_shards)]

    partials = run_sharded(lambda shard, _: partial_transpose(shard), shards, num_shards)
    cells = merge_partials(partials)

    matrix = build_item_user_matrix(cells, num_items, num_users)
    logger.info(f"Item x user matrix: shape={matrix.shape}, nnz={matrix.nnz:,}")
    return matrix
