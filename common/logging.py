import numpy as np


def log_action_matrix_summary(logger, action_matrix):
    matrix = action_matrix["matrix"]
    num_items, num_users = matrix.shape
    cells = num_items * num_users

    logger.info(f"=== {action_matrix['name'].capitalize()} Action Matrix (item x user) ===")
    logger.info("Shape: %s", matrix.shape)
    logger.info("Non-zero entries: %s", f"{matrix.nnz:,}")
    if cells:
        logger.info("Sparsity: %.4f%%", 100 * (1 - matrix.nnz / cells))
        logger.info("Density: %.4f%%", 100 * matrix.nnz / cells)
    logger.info("Malformed rows skipped: %s", f"{action_matrix['malformed_rows']:,}")

    if matrix.nnz == 0:
        logger.warning("⚠️  Matrix has no entries")
        return

    values = matrix.data
    logger.info("=== Preference Values ===")
    logger.info(f"Min value: {values.min()}")
    logger.info(f"Max value: {values.max()}")
    logger.info(f"Mean value: {values.mean():.2f}")
    logger.info(f"Total mass: {values.sum():.2f}")

    user_prefs = np.diff(matrix.tocsc().indptr)
    logger.info("=== Preferences per User ===")
    logger.info(f"Min prefs per user: {user_prefs.min()}")
    logger.info(f"Max prefs per user: {user_prefs.max()}")
    logger.info(f"Mean prefs per user: {user_prefs.mean():.2f}")
    logger.info(f"Median prefs per user: {np.median(user_prefs):.2f}")

    item_prefs = np.diff(matrix.indptr)
    items_with_0_prefs = (item_prefs == 0).sum()
    logger.info("=== Preferences per Item ===")
    logger.info(
        f"Items with 0 prefs: {items_with_0_prefs:,} ({100*items_with_0_prefs/num_items:.1f}%)"
    )
    logger.info(f"Max prefs per item: {item_prefs.max()}")
    logger.info(f"Mean prefs per item: {item_prefs.mean():.2f}")


def log_matrix_set_summary(logger, matrix_set):
    logger.info("=" * 80)
    logger.info("MATRIX SET SUMMARY")
    logger.info("=" * 80)
    logger.info(f"{'Stream':<12} {'Items':>12} {'Users':>12} {'Non-zero':>14} {'Malformed':>12}")
    logger.info("-" * 80)
    for name in ("primary", "secondary"):
        action_matrix = matrix_set[name]
        logger.info(
            f"{name:<12} "
            f"{action_matrix['num_items']:>12,} "
            f"{action_matrix['num_users']:>12,} "
            f"{action_matrix['matrix'].nnz:>14,} "
            f"{action_matrix['malformed_rows']:>12,}"
        )
    logger.info("-" * 80)
    logger.info(f"Shared user count: {matrix_set['num_users']:,}")
