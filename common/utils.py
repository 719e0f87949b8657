import json
import logging
import os
import pickle
from typing import Optional

import numpy as np
import pandas as pd

from common.errors import MalformedRowError

EVENT_COLUMNS = ["user_id", "item_id", "value", "partition", "offset"]
RECOGNISED_COLUMNS = ("user_id", "item_id", "action", "value")


def setup_logging(stage_name: str, log_file: str, level=logging.INFO):
    """Configure logging for a pipeline stage.

    Args:
        stage_name: Name for the logger (typically __name__)
        log_file: Path to the log file to write to
        level: Logging level (default: INFO)

    Returns:
        Configured logger instance
    """
    os.makedirs(os.path.dirname(log_file), exist_ok=True)

    logger = logging.getLogger(stage_name)
    logger.handlers.clear()

    # Disable propagation to root logger to prevent duplicate logging
    logger.propagate = False

    logger.setLevel(level)

    # File Handler
    file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(file_handler)

    return logger


def safe_read_events(
    filepath: str,
    partition: int,
    columns: list[str],
    delimiter: str = "\t",
    action: Optional[str] = None,
    boolean_data: bool = False,
    on_malformed: str = "skip",
) -> tuple[pd.DataFrame, int]:
    """
    Read one shard of delimited action rows.

    Args:
        filepath: Text file with one event per line.
        partition: Position of the file in the sorted partition list.
        columns: Column order of each row. Unrecognised names and trailing columns are ignored.
        delimiter: Field separator (taken literally).
        action: When set and an action column exists, rows with another action type are dropped.
        boolean_data: Ignore the value column and give every row a value of 1.0.
        on_malformed: "skip" to drop and count malformed rows, "fail" to raise MalformedRowError.

    Returns: tuple: (DataFrame with EVENT_COLUMNS, number of malformed rows)
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"File not found: {filepath}")

    positions = {name: columns.index(name) for name in RECOGNISED_COLUMNS if name in columns}
    missing_cols = [c for c in ("user_id", "item_id") if c not in positions]
    if missing_cols:
        raise ValueError(f"Missing columns in input format: {missing_cols}")

    # Rows end at "\n" only, with an optional trailing "\r"
    with open(filepath, "rb") as f:
        raw = f.read().split(b"\n")
    if raw[-1] == b"":
        raw.pop()
    raw = [r[:-1] if r.endswith(b"\r") else r for r in raw]

    # Undecodable lines become missing values and are counted as malformed below
    lines = pd.Series([_decode_line(r) for r in raw], dtype=object)

    # Blank lines are not events; the index keeps the original line offsets
    lines = lines[lines.isna() | (lines.str.strip() != "")]
    if lines.empty:
        return _empty_events(), 0

    n_needed = max(positions.values()) + 1
    fields = lines.str.split(delimiter, regex=False, expand=True).reindex(columns=range(n_needed)).astype(object)

    user = fields[positions["user_id"]].str.strip()
    item = fields[positions["item_id"]].str.strip()
    malformed = user.isna() | item.isna() | (user == "") | (item == "")

    if boolean_data or "value" not in positions:
        value = pd.Series(1.0, index=fields.index)
    else:
        value = pd.to_numeric(fields[positions["value"]].str.strip(), errors="coerce").astype(float)
        malformed |= ~np.isfinite(value)

    other_action = pd.Series(False, index=fields.index)
    if "action" in positions:
        action_col = fields[positions["action"]].str.strip()
        malformed |= action_col.isna()
        if action is not None:
            other_action = action_col.notna() & (action_col != action)
            # Rows of another action type belong to another stream
            malformed &= ~other_action
    keep = ~malformed & ~other_action

    if on_malformed == "fail" and malformed.any():
        first = int(malformed.idxmax())
        raise MalformedRowError(filepath, first, raw[first].decode("utf-8", errors="replace"))

    kept = keep[keep].index
    events = pd.DataFrame(
        {
            "user_id": user.loc[kept].to_numpy(dtype=object),
            "item_id": item.loc[kept].to_numpy(dtype=object),
            "value": value.loc[kept].to_numpy(dtype=np.float64),
            "partition": np.full(len(kept), partition, dtype=np.int64),
            "offset": kept.to_numpy(dtype=np.int64),
        }
    )
    return events, int(malformed.sum())


def _decode_line(raw: bytes) -> Optional[str]:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _empty_events() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "user_id": pd.Series(dtype=object),
            "item_id": pd.Series(dtype=object),
            "value": pd.Series(dtype=np.float64),
            "partition": pd.Series(dtype=np.int64),
            "offset": pd.Series(dtype=np.int64),
        }
    )


def load_index_mappings(pkl_file):
    """
    Load ID index mappings from a pickle file.

    Returns:
        external_to_internal: dict mapping external ID (item or user) → dense matrix index
        internal_to_external: dict mapping dense matrix index → external ID
    """
    with open(pkl_file, "rb") as f:
        external_to_internal = pickle.load(f)

    # Create reverse mapping: matrix index → external ID
    internal_to_external = {idx: external_id for external_id, idx in external_to_internal.items()}
    return external_to_internal, internal_to_external


def load_pickle(file_path: str):
    with open(file_path, "rb") as f:
        return pickle.load(f)


def save_pickle(data, filename):
    with open(filename, "wb") as f:
        pickle.dump(data, f)


def save_json(obj, path):
    with open(path, "w") as f:
        json.dump(obj, f, indent=2)


def load_json(path):
    with open(path, "r") as f:
        return json.load(f)
