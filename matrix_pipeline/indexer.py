"""
Dense ID indexing for external (string) user and item identifiers.

An IdIndexer is created per run and per action stream and handed to the stages
that need it. Storage is injectable so the mapping can live somewhere other
than process memory.
"""

import threading
from typing import Dict, Iterable, Optional, Protocol

import pandas as pd

from common.constants import MAX_INTERNAL_ID
from common.errors import IndexOverflowError
from common.utils import load_index_mappings, save_pickle


class IndexStorage(Protocol):
    """Bidirectional external ↔ internal ID store."""

    def get_internal(self, external_id: str) -> Optional[int]: ...

    def get_external(self, internal_id: int) -> Optional[str]: ...

    def put(self, external_id: str, internal_id: int) -> None: ...

    def __len__(self) -> int: ...

    def items(self) -> Iterable[tuple[str, int]]: ...


class InMemoryIndexStorage:
    def __init__(self):
        self.external_to_internal: Dict[str, int] = {}
        self.internal_to_external: Dict[int, str] = {}

    def get_internal(self, external_id: str) -> Optional[int]:
        return self.external_to_internal.get(external_id)

    def get_external(self, internal_id: int) -> Optional[str]:
        return self.internal_to_external.get(internal_id)

    def put(self, external_id: str, internal_id: int) -> None:
        self.external_to_internal[external_id] = internal_id
        self.internal_to_external[internal_id] = external_id

    def __len__(self) -> int:
        return len(self.external_to_internal)

    def items(self):
        return self.external_to_internal.items()


class IdIndexer:
    """
    Assigns dense internal IDs in [0, N) to external IDs, in order of first assignment.
    assign() is idempotent; resolve() is its inverse.
    """

    def __init__(self, storage: Optional[IndexStorage] = None, max_ids: int = MAX_INTERNAL_ID):
        self.storage = storage if storage is not None else InMemoryIndexStorage()
        self.max_ids = max_ids
        self.lock = threading.Lock()

    def assign(self, external_id: str) -> int:
        with self.lock:
            internal_id = self.storage.get_internal(external_id)
            if internal_id is not None:
                return internal_id

            internal_id = len(self.storage)
            if internal_id >= self.max_ids:
                raise IndexOverflowError(self.max_ids)
            self.storage.put(external_id, internal_id)
            return internal_id

    def resolve(self, internal_id: int) -> str:
        external_id = self.storage.get_external(internal_id)
        if external_id is None:
            raise KeyError(f"Unknown internal ID: {internal_id}")
        return external_id

    def lookup(self, external_id: str) -> Optional[int]:
        return self.storage.get_internal(external_id)

    def internal_ids(self, external_ids: pd.Series) -> pd.Series:
        """Map a column of external IDs to internal IDs (NaN for unknown IDs)."""
        return external_ids.map(self.to_mapping())

    def to_mapping(self) -> Dict[str, int]:
        return dict(self.storage.items())

    def __len__(self) -> int:
        return len(self.storage)

    def __contains__(self, external_id: str) -> bool:
        return self.storage.get_internal(external_id) is not None

    def save(self, path: str) -> None:
        save_pickle(self.to_mapping(), path)

    @classmethod
    def from_ordered_ids(cls, external_ids: Iterable[str], storage=None, max_ids: int = MAX_INTERNAL_ID):
        """Build an indexer whose internal IDs follow the given order."""
        indexer = cls(storage=storage, max_ids=max_ids)
        for external_id in external_ids:
            indexer.assign(external_id)
        return indexer

    @classmethod
    def load(cls, path: str, storage=None, max_ids: int = MAX_INTERNAL_ID):
        _, internal_to_external = load_index_mappings(path)
        return cls.from_ordered_ids(
            (internal_to_external[idx] for idx in sorted(internal_to_external)), storage=storage, max_ids=max_ids
        )
