"""
Command line entry point: build the primary/secondary action matrices.

Example:
    python pipeline.py --input data/actions --output data/matrices \
        --primaryPrefs purchase --secondaryPrefs view --minPrefsPerUser 2
"""

import argparse
import sys

from pydantic import ValidationError

from common.constants import ACTION_MATRICES, INPUT_FORMAT, PATHS
from common.errors import ActionMatrixError
from common.utils import setup_logging
from matrix_pipeline import MatrixSetBuilder, PrepareOptions

logger = setup_logging(__name__, PATHS["log_file"])


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Prepare primary/secondary item x user action matrices")
    ap.add_argument("--input", default=PATHS["input_root"], help="root of the action logs")
    ap.add_argument("--output", default=PATHS["output_root"], help="where the matrices and indexes are written")
    ap.add_argument("--primaryPrefs", default=ACTION_MATRICES["primary_prefs_path"],
                    help="user prefs for primary actions, relative to --input")
    ap.add_argument("--secondaryPrefs", default=ACTION_MATRICES["secondary_prefs_path"],
                    help="user prefs for secondary actions, relative to --input")
    ap.add_argument("--minPrefsPerUser", type=int, default=ACTION_MATRICES["min_prefs_per_user"],
                    help="ignore users with less preferences than this")
    ap.add_argument("--maxPrefsPerUser", type=int, default=ACTION_MATRICES["max_prefs_per_user"],
                    help="users with more preferences will be sampled down")
    ap.add_argument("--booleanData", action="store_true", help="treat input as without pref values")
    ap.add_argument("--columns", default=",".join(INPUT_FORMAT["columns"]),
                    help="comma separated column order, e.g. timestamp,user_id,action,item_id")
    ap.add_argument("--delimiter", default=INPUT_FORMAT["delimiter"], help="field separator (default: tab)")
    ap.add_argument("--action", default=INPUT_FORMAT["action"], help="keep only rows with this action type")
    ap.add_argument("--duplicatePolicy", choices=["sum", "last"], default=ACTION_MATRICES["duplicate_policy"])
    ap.add_argument("--onMalformed", choices=["skip", "fail"], default=ACTION_MATRICES["on_malformed"])
    ap.add_argument("--seed", type=int, default=ACTION_MATRICES["seed"])
    ap.add_argument("--numWorkers", type=int, default=ACTION_MATRICES["num_workers"])
    return ap.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        options = PrepareOptions(
            input_root=args.input,
            output_root=args.output,
            primary_prefs_path=args.primaryPrefs,
            secondary_prefs_path=args.secondaryPrefs,
            min_prefs_per_user=args.minPrefsPerUser,
            max_prefs_per_user=args.maxPrefsPerUser,
            boolean_data=args.booleanData,
            columns=[c.strip() for c in args.columns.split(",") if c.strip()],
            delimiter=args.delimiter.encode().decode("unicode_escape"),
            action=args.action,
            duplicate_policy=args.duplicatePolicy,
            on_malformed=args.onMalformed,
            seed=args.seed,
            num_workers=args.numWorkers,
        )
    except ValidationError as e:
        print(f"[pipeline] invalid options:\n{e}", file=sys.stderr)
        return 2

    builder = MatrixSetBuilder(options)
    try:
        matrix_set = builder.build()
    except ActionMatrixError as e:
        logger.error(f"Pipeline {builder.pipeline_id} failed: {e}")
        print(f"[pipeline] failed in {builder.tracker.failed_stage.value}: {e}", file=sys.stderr)
        return 1

    print(f"[pipeline] wrote matrices for {matrix_set['num_users']:,} users to {options.output_root}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
