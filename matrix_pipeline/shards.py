"""
Input partitioning and shard-parallel execution.

Partitions are the input files sorted by relative path, which gives every row a
total order key (partition, offset). A stage maps a function over its shards in
a thread pool and blocks until all of them finish; one failing shard cancels the
rest and fails the stage.
"""

import os
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, List, Sequence, TypeVar

from common.constants import PATHS
from common.utils import setup_logging

logger = setup_logging(__name__, PATHS["log_file"])

S = TypeVar("S")
R = TypeVar("R")


def list_partitions(path: str) -> List[str]:
    """
    List the input files under a path.
    A file is its own single partition; a directory is searched recursively and
    files whose name starts with "." or "_" (markers, checksums) are skipped.
    """
    if os.path.isfile(path):
        return [path]
    if not os.path.isdir(path):
        raise FileNotFoundError(f"Input path not found: {path}")

    partitions = []
    for root, dirs, files in os.walk(path):
        dirs[:] = [d for d in dirs if not d.startswith((".", "_"))]
        for name in files:
            if name.startswith((".", "_")):
                continue
            partitions.append(os.path.join(root, name))

    partitions.sort(key=lambda p: os.path.relpath(p, path))
    if not partitions:
        raise FileNotFoundError(f"No input files under: {path}")
    return partitions


def run_sharded(fn: Callable[[S, int], R], shards: Sequence[S], num_workers: int = 1) -> List[R]:
    """
    Apply fn(shard, shard_number) to every shard and return the results in shard order.
    """
    if num_workers <= 1 or len(shards) <= 1:
        return [fn(shard, i) for i, shard in enumerate(shards)]

    with ThreadPoolExecutor(max_workers=min(num_workers, len(shards))) as executor:
        futures = [executor.submit(fn, shard, i) for i, shard in enumerate(shards)]
        done, not_done = wait(futures, return_when=FIRST_EXCEPTION)

        failed = [f for f in futures if f in done and f.exception() is not None]
        if failed:
            for future in not_done:
                future.cancel()
            logger.error(f"{len(failed)} of {len(shards)} shards failed, cancelled {len(not_done)} pending shards")
            raise failed[0].exception()

        return [f.result() for f in futures]
