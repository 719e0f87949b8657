import os
import shutil
from typing import Optional

import scipy.sparse as sp

from matrix_pipeline.stages import stage_1_item_index as stage_1
from matrix_pipeline.stages import stage_2_user_vectors as stage_2
from matrix_pipeline.stages import stage_3_sampling as stage_3
from matrix_pipeline.stages import stage_4_transpose as stage_4

from common.constants import ARTIFACTS, PATHS
from common.errors import DimensionMismatchError
from common.logging import log_action_matrix_summary
from common.utils import save_json, setup_logging
from matrix_pipeline.data_models import ActionMatrix, ItemIndexResult, MatrixSet, UserVectorsResult
from matrix_pipeline.results import StageResult
from matrix_pipeline.schemas import PrepareOptions
from matrix_pipeline.shards import list_partitions

logger = setup_logging(__name__, PATHS["log_file"])


def run_item_index_stage(options: PrepareOptions, stream: str) -> StageResult[ItemIndexResult]:
    def _run():
        prefs_path = options.prefs_path(stream)
        logger.info(f"[{stream}] Listing partitions under {prefs_path}...")
        partitions = list_partitions(prefs_path)

        logger.info(f"[{stream}] Indexing items over {len(partitions)} partitions...")
        item_index = stage_1.build_item_index(partitions, options)

        logger.info(f"✓ [{stream}] Item index completed - {len(item_index):,} items")
        return {"partitions": partitions, "item_index": item_index}

    return StageResult.capture(f"indexing_{stream}", _run)


def run_user_vectors_stage(options: PrepareOptions, stream: str, indexed: ItemIndexResult) -> StageResult[UserVectorsResult]:
    def _run():
        logger.info(f"[{stream}] Building user vectors...")
        vectors = stage_2.build_user_vectors(indexed["partitions"], indexed["item_index"], options)

        logger.info(f"✓ [{stream}] User vectors completed - {vectors['num_users']:,} users")
        return vectors

    return StageResult.capture(f"vectors_{stream}", _run)


def run_matrix_stage(
    options: PrepareOptions, stream: str, vectors: UserVectorsResult, staging_dir: Optional[str] = None
) -> StageResult[ActionMatrix]:
    def _run():
        user_vectors = vectors["user_vectors"]
        if options.max_prefs_per_user is not None:
            logger.info(f"[{stream}] Sampling user vectors (max_prefs_per_user={options.max_prefs_per_user})...")
            user_vectors = stage_3.sample_user_vectors(user_vectors, options.max_prefs_per_user, options.seed)

        logger.info(f"[{stream}] Transposing user vectors...")
        num_items = len(vectors["item_index"])
        matrix = stage_4.transpose_user_vectors(user_vectors, num_items, vectors["num_users"], options.num_workers)

        action_matrix: ActionMatrix = {
            "name": stream,
            "matrix": matrix,
            "item_index": vectors["item_index"],
            "user_index": vectors["user_index"],
            "num_items": num_items,
            "num_users": vectors["num_users"],
            "malformed_rows": vectors["malformed_rows"],
        }
        log_action_matrix_summary(logger, action_matrix)

        if staging_dir is not None:
            save_action_matrix(action_matrix, os.path.join(staging_dir, ARTIFACTS[f"{stream}_dir"]))

        logger.info(f"✓ [{stream}] Action matrix completed")
        return action_matrix

    return StageResult.capture(f"matrix_{stream}", _run)


def run_reconcile_stage(primary: ActionMatrix, secondary: ActionMatrix) -> StageResult[MatrixSet]:
    def _run():
        logger.info(f"Reconciling user counts: primary={primary['num_users']:,}, secondary={secondary['num_users']:,}")
        if primary["num_users"] != secondary["num_users"]:
            raise DimensionMismatchError(primary["num_users"], secondary["num_users"])

        logger.info("✓ Reconcile completed")
        return {"primary": primary, "secondary": secondary, "num_users": primary["num_users"]}

    return StageResult.capture("reconcile", _run)


def save_action_matrix(action_matrix: ActionMatrix, directory: str) -> None:
    os.makedirs(directory, exist_ok=True)
    action_matrix["item_index"].save(os.path.join(directory, ARTIFACTS["item_index"]))
    action_matrix["user_index"].save(os.path.join(directory, ARTIFACTS["user_index"]))
    sp.save_npz(os.path.join(directory, ARTIFACTS["matrix"]), action_matrix["matrix"])


def publish_artifacts(matrix_set: MatrixSet, staging_dir: str, output_root: str) -> str:
    """Write the shared metadata and move every staged artifact into the output root."""
    save_json(
        {
            "num_users": matrix_set["num_users"],
            "num_items": {name: matrix_set[name]["num_items"] for name in ("primary", "secondary")},
            "malformed_rows": {name: matrix_set[name]["malformed_rows"] for name in ("primary", "secondary")},
        },
        os.path.join(staging_dir, ARTIFACTS["num_users"]),
    )

    for name in sorted(os.listdir(staging_dir)):
        target = os.path.join(output_root, name)
        if os.path.isdir(target):
            shutil.rmtree(target)
        elif os.path.exists(target):
            os.remove(target)
        shutil.move(os.path.join(staging_dir, name), target)
    os.rmdir(staging_dir)

    logger.info(f"Artifacts published to {output_root}")
    return output_root


# Stage registry - order and dependencies within one action stream
STAGES = [
    ("indexing", run_item_index_stage, []),
    ("vectors", run_user_vectors_stage, ["indexing"]),
    ("matrix", run_matrix_stage, ["vectors"]),
]
