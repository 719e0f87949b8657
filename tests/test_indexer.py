import pandas as pd
import pytest

from common.errors import IndexOverflowError
from matrix_pipeline.indexer import IdIndexer, InMemoryIndexStorage


def test_assign_is_dense_and_idempotent():
    indexer = IdIndexer()
    assert indexer.assign("apple") == 0
    assert indexer.assign("pear") == 1
    assert indexer.assign("apple") == 0
    assert indexer.assign("fig") == 2
    assert len(indexer) == 3


def test_resolve_round_trip_and_injective():
    external_ids = [f"item-{i}" for i in range(50)] + ["item-3", "item-7"]
    indexer = IdIndexer()
    assigned = {x: indexer.assign(x) for x in external_ids}

    assert len(set(assigned.values())) == len(assigned)
    assert sorted(assigned.values()) == list(range(len(assigned)))
    for x, internal_id in assigned.items():
        assert indexer.resolve(internal_id) == x
        assert indexer.lookup(x) == internal_id


def test_resolve_unknown_id_raises():
    indexer = IdIndexer.from_ordered_ids(["a"])
    with pytest.raises(KeyError):
        indexer.resolve(5)
    assert indexer.lookup("b") is None
    assert "a" in indexer
    assert "b" not in indexer


def test_overflow_when_range_exhausted():
    indexer = IdIndexer(max_ids=2)
    indexer.assign("a")
    indexer.assign("b")
    # already known IDs are still fine
    assert indexer.assign("a") == 0
    with pytest.raises(IndexOverflowError):
        indexer.assign("c")


def test_internal_ids_maps_column():
    indexer = IdIndexer.from_ordered_ids(["x", "y"])
    mapped = indexer.internal_ids(pd.Series(["y", "x", "z"]))
    assert mapped.iloc[0] == 1
    assert mapped.iloc[1] == 0
    assert pd.isna(mapped.iloc[2])


def test_injected_storage_is_used():
    storage = InMemoryIndexStorage()
    indexer = IdIndexer(storage=storage)
    indexer.assign("u1")
    assert storage.external_to_internal == {"u1": 0}
    assert storage.internal_to_external == {0: "u1"}


def test_save_and_load_preserves_ids(tmp_path):
    indexer = IdIndexer.from_ordered_ids(["c", "a", "b"])
    path = tmp_path / "index.pkl"
    indexer.save(str(path))

    loaded = IdIndexer.load(str(path))
    assert loaded.to_mapping() == {"c": 0, "a": 1, "b": 2}
    assert loaded.assign("d") == 3
