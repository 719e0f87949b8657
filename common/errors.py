"""
Error kinds raised by the action matrix pipeline.
All of them derive from ActionMatrixError so callers can catch the family.
"""


class ActionMatrixError(Exception):
    """Base class for pipeline errors."""


class MalformedRowError(ActionMatrixError):
    """A row could not be parsed into the configured column shape or numeric value."""

    def __init__(self, path: str, offset: int, line: str):
        self.path = path
        self.offset = offset
        self.line = line
        super().__init__(f"Malformed row at {path}:{offset}: {line!r}")


class IndexOverflowError(ActionMatrixError):
    """More distinct external IDs than the internal ID range can represent."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Distinct ID count exceeds the representable range ({limit:,} IDs)")


class StageFailure(ActionMatrixError):
    """A pipeline stage did not complete."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Stage {stage} failed: {type(cause).__name__}: {cause}")


class DimensionMismatchError(ActionMatrixError):
    """The two action matrices were built against different user-space sizes."""

    def __init__(self, primary_users: int, secondary_users: int):
        self.primary_users = primary_users
        self.secondary_users = secondary_users
        super().__init__(
            f"User count mismatch: primary has {primary_users:,} users, secondary has {secondary_users:,} users"
        )
