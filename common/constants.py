"""
Centralized configuration for the action matrix preparation pipeline.
Defines all paths, option defaults, and artifact names used across stages.
"""

from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent.absolute()
DATA_DIR = PROJECT_ROOT / "data"
INPUT_DIR = DATA_DIR / "actions"
OUTPUT_DIR = DATA_DIR / "matrices"
LOGS_DIR = PROJECT_ROOT / "logs"

date_str = datetime.now().strftime("%m%d%Y")
LOG_FILE = str(LOGS_DIR / f"{date_str}_matrices.log")

# Largest dense ID the downstream matrix consumer can address (signed 32-bit)
MAX_INTERNAL_ID = 2**31 - 1

ACTION_MATRICES = {
    "min_prefs_per_user": 1,
    "max_prefs_per_user": None,  # None = no sampling
    "boolean_data": False,
    "duplicate_policy": "sum",  # "sum", "last"
    "on_malformed": "skip",  # "skip", "fail"
    "seed": 42,
    "num_workers": 4,
    "primary_prefs_path": "primary",
    "secondary_prefs_path": "secondary",
}

INPUT_FORMAT = {
    "delimiter": "\t",
    # Column order of each row. Recognised names: user_id, item_id, action, value.
    # Anything else (e.g. "timestamp") and any trailing columns are ignored.
    "columns": ["user_id", "item_id", "value"],
    "action": None,  # keep only rows with this action type when an action column exists
}

# Artifact names inside the output root
ARTIFACTS = {
    "primary_dir": "primary",
    "secondary_dir": "secondary",
    "item_index": "item_index.pkl",
    "user_index": "user_index.pkl",
    "matrix": "item_user_matrix.npz",
    "num_users": "num_users.json",
    "staging_prefix": ".staging_",
}

PATHS = {
    "input_root": str(INPUT_DIR),
    "output_root": str(OUTPUT_DIR),
    "log_file": LOG_FILE,
}
