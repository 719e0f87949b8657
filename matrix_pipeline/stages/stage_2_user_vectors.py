import numpy as np
import pandas as pd

from common.constants import PATHS
from common.utils import setup_logging
from matrix_pipeline.data_models import UserVectorsResult
from matrix_pipeline.indexer import IdIndexer
from matrix_pipeline.schemas import PrepareOptions
from matrix_pipeline.shards import run_sharded
from matrix_pipeline.stages.stage_1_item_index import first_occurrences, read_shard

logger = setup_logging(__name__, PATHS["log_file"])

PAIR = ["user_id", "item_idx"]
FIRST_SEEN = ["first_partition", "first_offset"]
LAST_SEEN = ["last_partition", "last_offset"]


def to_preferences(events: pd.DataFrame, item_index: IdIndexer) -> pd.DataFrame:
    """Replace external item IDs with internal ones and attach first/last seen positions."""
    item_idx = item_index.internal_ids(events["item_id"])
    if item_idx.isna().any():
        unknown = events.loc[item_idx.isna(), "item_id"].iloc[0]
        raise KeyError(f"Item {unknown!r} is missing from the item index")

    return pd.DataFrame(
        {
            "user_id": events["user_id"].to_numpy(dtype=object),
            "item_idx": item_idx.to_numpy(dtype=np.int64),
            "value": events["value"].to_numpy(dtype=np.float64),
            "first_partition": events["partition"].to_numpy(),
            "first_offset": events["offset"].to_numpy(),
            "last_partition": events["partition"].to_numpy(),
            "last_offset": events["offset"].to_numpy(),
        }
    )


def combine_preferences(prefs: pd.DataFrame, combiner: str = "sum") -> pd.DataFrame:
    """
    Collapse repeated (user, item) rows into one.

    combiner:
        "sum": values add up
        "last": value of the latest row in (partition, offset) order wins
        "boolean": every surviving pair gets 1.0
    The output has the same columns as the input, so the function can run per shard
    and again over the concatenated shard outputs.
    """
    if prefs.empty:
        return prefs.copy()

    by_first = prefs.sort_values(FIRST_SEEN, kind="mergesort").groupby(PAIR, sort=False)
    by_last = prefs.sort_values(LAST_SEEN, kind="mergesort").groupby(PAIR, sort=False)

    combined = by_first[FIRST_SEEN].first()
    last_seen = by_last[LAST_SEEN].last()
    for col in LAST_SEEN:
        combined[col] = last_seen[col]

    if combiner == "sum":
        combined["value"] = by_first["value"].sum()
    elif combiner == "last":
        combined["value"] = by_last["value"].last()
    elif combiner == "boolean":
        combined["value"] = 1.0
    else:
        raise ValueError(f"Unknown duplicate combiner: {combiner}")

    return combined.reset_index()[prefs.columns]


def filter_min_prefs(prefs: pd.DataFrame, min_prefs_per_user: int) -> pd.DataFrame:
    """Drop users with fewer than min_prefs_per_user distinct items."""
    n_items = prefs.groupby("user_id")["item_idx"].transform("size")
    return prefs[n_items >= min_prefs_per_user]


def build_user_vectors(partitions: list[str], item_index: IdIndexer, options: PrepareOptions) -> UserVectorsResult:
    """
    Aggregate raw events into one preference vector per user.
    Retained users get dense IDs in order of their first event.
    """
    combiner = options.duplicate_combiner

    def scan(path, partition):
        events, n_malformed = read_shard(path, partition, options)
        return combine_preferences(to_preferences(events, item_index), combiner), n_malformed

    partials = run_sharded(scan, partitions, options.num_workers)
    malformed_rows = sum(n for _, n in partials)
    prefs = combine_preferences(pd.concat([p for p, _ in partials], ignore_index=True), combiner)

    n_all_users = prefs["user_id"].nunique()
    prefs = filter_min_prefs(prefs, options.min_prefs_per_user)

    first_seen = prefs.rename(columns={"first_partition": "partition", "first_offset": "offset"})
    user_order = first_occurrences(first_seen, "user_id")["user_id"]
    user_index = IdIndexer.from_ordered_ids(user_order, max_ids=options.max_ids)

    user_vectors = pd.DataFrame(
        {
            "user_idx": user_index.internal_ids(prefs["user_id"]).to_numpy(dtype=np.int64),
            "item_idx": prefs["item_idx"].to_numpy(dtype=np.int64),
            "value": prefs["value"].to_numpy(dtype=np.float64),
        }
    )
    user_vectors = user_vectors.sort_values(["user_idx", "item_idx"]).reset_index(drop=True)

    num_users = len(user_index)
    logger.info(f"Users: {num_users:,} retained of {n_all_users:,} (min_prefs_per_user={options.min_prefs_per_user})")
    logger.info(f"Preferences: {len(user_vectors):,} | combiner: {combiner}")
    if malformed_rows:
        logger.warning(f"Skipped {malformed_rows:,} malformed rows")

    return {
        "item_index": item_index,
        "user_vectors": user_vectors,
        "user_index": user_index,
        "num_users": num_users,
        "malformed_rows": malformed_rows,
    }
