import pytest

from matrix_pipeline.shards import list_partitions
from matrix_pipeline.stages.stage_1_item_index import build_item_index
from matrix_pipeline.stages.stage_2_user_vectors import build_user_vectors
from conftest import write_rows


def _build(options, stream="primary"):
    partitions = list_partitions(options.prefs_path(stream))
    item_index = build_item_index(partitions, options)
    return build_user_vectors(partitions, item_index, options)


def _vector(result, user):
    user_idx = result["user_index"].lookup(user)
    rows = result["user_vectors"][result["user_vectors"]["user_idx"] == user_idx]
    return {result["item_index"].resolve(int(i)): v for i, v in zip(rows["item_idx"], rows["value"])}


def test_user_with_three_items_is_retained(action_root, make_options):
    write_rows(action_root / "primary" / "part-0", [("u1", "a", 1), ("u1", "b", 2), ("u1", "c", 3)])
    result = _build(make_options(min_prefs_per_user=1))

    assert result["num_users"] == 1
    assert _vector(result, "u1") == {"a": 1.0, "b": 2.0, "c": 3.0}


def test_user_below_min_prefs_is_dropped(action_root, make_options):
    write_rows(action_root / "primary" / "part-0", [("u1", "a", 1), ("u2", "a", 1), ("u2", "b", 1)])
    result = _build(make_options(min_prefs_per_user=2))

    assert result["num_users"] == 1
    assert result["user_index"].lookup("u1") is None
    assert set(result["user_vectors"]["user_idx"]) == {0}
    # the dropped user's items stay in the item index
    assert len(result["item_index"]) == 2


def test_min_prefs_counts_distinct_items(action_root, make_options):
    write_rows(action_root / "primary" / "part-0", [("u1", "a", 1), ("u1", "a", 1), ("u2", "a", 1), ("u2", "b", 1)])
    result = _build(make_options(min_prefs_per_user=2))

    assert result["num_users"] == 1
    assert result["user_index"].to_mapping() == {"u2": 0}


def test_retained_vectors_satisfy_min_prefs(action_root, make_options):
    rows = [(f"u{u}", f"i{i}", 1) for u in range(10) for i in range(u % 4)]
    write_rows(action_root / "primary" / "part-0", rows)
    result = _build(make_options(min_prefs_per_user=2))

    sizes = result["user_vectors"].groupby("user_idx").size()
    assert (sizes >= 2).all()
    # u2, u3, u6, u7
    assert result["num_users"] == len(sizes) == 4


def test_duplicates_sum_by_default_across_partitions(action_root, make_options):
    write_rows(action_root / "primary" / "part-0", [("u1", "a", 1.5), ("u1", "b", 1)])
    write_rows(action_root / "primary" / "part-1", [("u1", "a", 2)])
    result = _build(make_options(num_workers=2))

    assert _vector(result, "u1") == {"a": 3.5, "b": 1.0}


def test_duplicates_last_policy_uses_row_order(action_root, make_options):
    write_rows(action_root / "primary" / "part-1", [("u1", "a", 9)])
    write_rows(action_root / "primary" / "part-0", [("u1", "a", 1), ("u1", "a", 4)])
    result = _build(make_options(duplicate_policy="last", num_workers=2))

    assert _vector(result, "u1") == {"a": 9.0}


def test_boolean_data_collapses_duplicates(action_root, make_options):
    write_rows(action_root / "primary" / "part-0", [("u1", "a", 5), ("u1", "a", 3), ("u1", "b", 2)])
    result = _build(make_options(boolean_data=True))

    assert _vector(result, "u1") == {"a": 1.0, "b": 1.0}
    assert len(result["user_vectors"]) == 2


def test_user_ids_follow_first_encounter(action_root, make_options):
    write_rows(action_root / "primary" / "part-1", [("zed", "a", 1), ("amy", "a", 1)])
    write_rows(action_root / "primary" / "part-0", [("bob", "b", 1), ("zed", "b", 1)])
    result = _build(make_options(num_workers=2))

    assert result["user_index"].to_mapping() == {"bob": 0, "zed": 1, "amy": 2}


def test_malformed_rows_counted(action_root, make_options):
    write_rows(action_root / "primary" / "part-0", ["u1\ta\t1", "u1\tb\tx", "broken"])
    write_rows(action_root / "primary" / "part-1", ["u2\ta\t?"])
    result = _build(make_options())

    assert result["malformed_rows"] == 3
    assert result["num_users"] == 1


@pytest.mark.parametrize("num_workers", [1, 4])
def test_result_independent_of_worker_count(action_root, make_options, num_workers):
    for p in range(4):
        rows = [(f"u{(p * 7 + r) % 5}", f"i{(p + r) % 6}", r + 1) for r in range(8)]
        write_rows(action_root / "primary" / f"part-{p}", rows)
    result = _build(make_options(num_workers=num_workers))

    assert result["num_users"] == 5
    assert result["user_index"].to_mapping() == {"u0": 0, "u1": 1, "u2": 2, "u3": 3, "u4": 4}
    assert result["user_vectors"]["value"].sum() == pytest.approx(4 * sum(range(1, 9)))
