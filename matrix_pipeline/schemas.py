import os
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from common.constants import ACTION_MATRICES, INPUT_FORMAT, MAX_INTERNAL_ID, PATHS


class PrepareOptions(BaseModel):
    """
    Options for building the primary/secondary action matrices.

    primary_prefs_path / secondary_prefs_path are resolved against input_root
    (absolute paths are used as they are).
    max_prefs_per_user: users with more preferences are sampled down; None disables sampling.
    duplicate_policy: how repeated (user, item) rows combine in weighted mode.
    on_malformed: "skip" drops and counts bad rows, "fail" aborts the stage.
    """

    input_root: str = PATHS["input_root"]
    output_root: str = PATHS["output_root"]
    primary_prefs_path: str = ACTION_MATRICES["primary_prefs_path"]
    secondary_prefs_path: str = ACTION_MATRICES["secondary_prefs_path"]

    min_prefs_per_user: int = Field(default=ACTION_MATRICES["min_prefs_per_user"], ge=1)
    max_prefs_per_user: Optional[int] = Field(default=ACTION_MATRICES["max_prefs_per_user"], ge=1)
    boolean_data: bool = ACTION_MATRICES["boolean_data"]
    duplicate_policy: Literal["sum", "last"] = ACTION_MATRICES["duplicate_policy"]
    on_malformed: Literal["skip", "fail"] = ACTION_MATRICES["on_malformed"]
    seed: int = ACTION_MATRICES["seed"]
    num_workers: int = Field(default=ACTION_MATRICES["num_workers"], ge=1)
    max_ids: int = Field(default=MAX_INTERNAL_ID, ge=1, le=MAX_INTERNAL_ID)

    delimiter: str = Field(default=INPUT_FORMAT["delimiter"], min_length=1)
    columns: list[str] = Field(default_factory=lambda: list(INPUT_FORMAT["columns"]))
    action: Optional[str] = INPUT_FORMAT["action"]

    @field_validator("columns")
    @classmethod
    def _check_columns(cls, columns: list[str]) -> list[str]:
        missing_cols = [c for c in ("user_id", "item_id") if c not in columns]
        if missing_cols:
            raise ValueError(f"Missing columns in input format: {missing_cols}")
        for name in ("user_id", "item_id", "action", "value"):
            if columns.count(name) > 1:
                raise ValueError(f"Column {name!r} appears more than once")
        return columns

    @model_validator(mode="after")
    def _check_prefs_bounds(self):
        # A sampled vector must still satisfy the minimum-preferences filter
        if self.max_prefs_per_user is not None and self.max_prefs_per_user < self.min_prefs_per_user:
            raise ValueError(
                f"max_prefs_per_user ({self.max_prefs_per_user}) must be >= "
                f"min_prefs_per_user ({self.min_prefs_per_user})"
            )
        return self

    @property
    def duplicate_combiner(self) -> str:
        """Combiner for repeated (user, item) rows: boolean data always collapses."""
        return "boolean" if self.boolean_data else self.duplicate_policy

    def prefs_path(self, stream: str) -> str:
        relative = self.primary_prefs_path if stream == "primary" else self.secondary_prefs_path
        return os.path.join(self.input_root, relative)
