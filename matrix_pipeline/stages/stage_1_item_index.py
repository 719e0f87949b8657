import pandas as pd

from common.constants import PATHS
from common.utils import safe_read_events, setup_logging
from matrix_pipeline.indexer import IdIndexer
from matrix_pipeline.schemas import PrepareOptions
from matrix_pipeline.shards import run_sharded

logger = setup_logging(__name__, PATHS["log_file"])

POSITION = ["partition", "offset"]


def first_occurrences(events: pd.DataFrame, key: str) -> pd.DataFrame:
    """
    Reduce events to the earliest (partition, offset) of each distinct key.
    Applying it to the concatenation of partial results gives the same answer as
    applying it once to all events, so it works both as combiner and reducer.
    """
    ordered = events[[key, *POSITION]].sort_values(POSITION, kind="mergesort")
    return ordered.drop_duplicates(subset=key, keep="first").reset_index(drop=True)


def read_shard(path: str, partition: int, options: PrepareOptions) -> tuple[pd.DataFrame, int]:
    return safe_read_events(
        path,
        partition,
        columns=options.columns,
        delimiter=options.delimiter,
        action=options.action,
        boolean_data=options.boolean_data,
        on_malformed=options.on_malformed,
    )


def build_item_index(partitions: list[str], options: PrepareOptions) -> IdIndexer:
    """
    Assign dense item IDs in order of first encounter over (partition, offset).
    Each shard reports its own first occurrences; those are merged keeping the
    earliest position per item, so the result does not depend on shard timing.
    """

    def scan(path, partition):
        events, _ = read_shard(path, partition, options)
        return first_occurrences(events, "item_id")

    partials = run_sharded(scan, partitions, options.num_workers)
    merged = first_occurrences(pd.concat(partials, ignore_index=True), "item_id")

    item_index = IdIndexer.from_ordered_ids(merged["item_id"], max_ids=options.max_ids)
    logger.info(f"Indexed {len(item_index):,} items from {len(partitions)} partitions")
    return item_index
