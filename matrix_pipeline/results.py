"""
Per-stage result type.

A StageResult carries either the stage output or the error that stopped it.
Chaining with and_then() skips every later stage once one has failed.
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from common.errors import ActionMatrixError, StageFailure

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class StageResult(Generic[T]):
    stage: str
    value: Optional[T] = None
    error: Optional[ActionMatrixError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, stage: str, value: T) -> "StageResult[T]":
        return cls(stage=stage, value=value)

    @classmethod
    def failure(cls, stage: str, error: BaseException) -> "StageResult[Any]":
        # Domain errors keep their type, anything else becomes a StageFailure
        if not isinstance(error, ActionMatrixError):
            wrapped = StageFailure(stage, error)
            wrapped.__cause__ = error
            error = wrapped
        return cls(stage=stage, error=error)

    @classmethod
    def capture(cls, stage: str, fn: Callable[..., T], *args, **kwargs) -> "StageResult[T]":
        """Run fn and wrap its return value or exception."""
        try:
            return cls.success(stage, fn(*args, **kwargs))
        except Exception as e:
            return cls.failure(stage, e)

    def and_then(self, fn: Callable[[T], "StageResult[U]"]) -> "StageResult[U]":
        if not self.ok:
            return self
        return fn(self.value)

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value
