from typing import Optional

import numpy as np
import pandas as pd

from common.constants import PATHS
from common.utils import setup_logging

logger = setup_logging(__name__, PATHS["log_file"])


def sample_user_vector(vector: pd.DataFrame, max_prefs_per_user: Optional[int], seed: int = 42) -> pd.DataFrame:
    """
    Down-sample one user's preferences to max_prefs_per_user entries.

    Entries are drawn uniformly without replacement. The random source is seeded with
    (seed, user_idx) over entries ordered by item_idx, so the same user always keeps
    the same entries no matter which shard processes it. Values are never modified.
    """
    if max_prefs_per_user is None or len(vector) <= max_prefs_per_user:
        return vector

    user_idx = int(vector["user_idx"].iloc[0])
    ordered = vector.sort_values("item_idx", kind="mergesort")
    rng = np.random.default_rng([seed, user_idx])
    picks = np.sort(rng.choice(len(ordered), size=max_prefs_per_user, replace=False))
    return ordered.iloc[picks]


def sample_user_vectors(user_vectors: pd.DataFrame, max_prefs_per_user: Optional[int], seed: int = 42) -> pd.DataFrame:
    """Apply sample_user_vector to every user with more than max_prefs_per_user entries."""
    if max_prefs_per_user is None or user_vectors.empty:
        return user_vectors

    sizes = user_vectors.groupby("user_idx")["item_idx"].transform("size")
    over = user_vectors[sizes > max_prefs_per_user]
    if over.empty:
        return user_vectors

    sampled = [sample_user_vector(vector, max_prefs_per_user, seed) for _, vector in over.groupby("user_idx")]
    result = pd.concat([user_vectors[sizes <= max_prefs_per_user], *sampled], ignore_index=True)

    n_users_sampled = len(sampled)
    logger.info(
        f"Sampled {n_users_sampled:,} users down to {max_prefs_per_user} prefs "
        f"({len(user_vectors):,} → {len(result):,} preferences)"
    )
    return result.sort_values(["user_idx", "item_idx"]).reset_index(drop=True)
