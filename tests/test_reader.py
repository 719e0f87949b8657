import pytest

from common.errors import MalformedRowError
from common.utils import safe_read_events
from conftest import write_rows

DEFAULT_COLUMNS = ["user_id", "item_id", "value"]


def test_reads_rows_and_ignores_trailing_columns(tmp_path):
    path = write_rows(tmp_path / "p.tsv", [("u1", "i1", "2.5", "extra", "more"), ("u2", "i2", "1")])
    events, n_malformed = safe_read_events(str(path), 3, DEFAULT_COLUMNS)

    assert n_malformed == 0
    assert events["user_id"].tolist() == ["u1", "u2"]
    assert events["item_id"].tolist() == ["i1", "i2"]
    assert events["value"].tolist() == [2.5, 1.0]
    assert events["partition"].tolist() == [3, 3]
    assert events["offset"].tolist() == [0, 1]


def test_configurable_column_order_and_action_filter(tmp_path):
    rows = [
        ("1365000000", "u1", "view", "i1"),
        ("1365000001", "u2", "purchase", "i2"),
        ("1365000002", "u3", "view", "i3"),
    ]
    path = write_rows(tmp_path / "p.csv", rows, delimiter=",")
    columns = ["timestamp", "user_id", "action", "item_id"]
    events, n_malformed = safe_read_events(str(path), 0, columns, delimiter=",", action="view")

    assert n_malformed == 0
    assert events["user_id"].tolist() == ["u1", "u3"]
    assert events["value"].tolist() == [1.0, 1.0]
    assert events["offset"].tolist() == [0, 2]


def test_malformed_rows_are_skipped_and_counted(tmp_path):
    rows = ["u1\ti1\t3", "u2\ti2\tnot-a-number", "u3", "\ti4\t1", "u5\ti5\tinf", "u6\ti6\t4"]
    path = write_rows(tmp_path / "p.tsv", rows)
    events, n_malformed = safe_read_events(str(path), 0, DEFAULT_COLUMNS)

    assert n_malformed == 4
    assert events["user_id"].tolist() == ["u1", "u6"]


def test_boolean_mode_ignores_value_column(tmp_path):
    path = write_rows(tmp_path / "p.tsv", ["u1\ti1\tnot-a-number", "u1\ti2\t7"])
    events, n_malformed = safe_read_events(str(path), 0, DEFAULT_COLUMNS, boolean_data=True)

    assert n_malformed == 0
    assert events["value"].tolist() == [1.0, 1.0]


def test_fail_policy_reports_offset_of_bad_row(tmp_path):
    path = write_rows(tmp_path / "p.tsv", ["u1\ti1\t1", "", "u2\ti2\tbad"])
    with pytest.raises(MalformedRowError) as exc_info:
        safe_read_events(str(path), 0, DEFAULT_COLUMNS, on_malformed="fail")

    assert exc_info.value.offset == 2
    assert exc_info.value.line == "u2\ti2\tbad"


def test_blank_and_empty_files(tmp_path):
    path = write_rows(tmp_path / "p.tsv", ["", "   "])
    events, n_malformed = safe_read_events(str(path), 0, DEFAULT_COLUMNS)
    assert events.empty
    assert n_malformed == 0
    assert list(events.columns) == ["user_id", "item_id", "value", "partition", "offset"]


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        safe_read_events(str(tmp_path / "nope.tsv"), 0, DEFAULT_COLUMNS)


def test_undecodable_line_is_skipped_and_counted(tmp_path):
    path = tmp_path / "p.tsv"
    path.write_bytes(b"u1\ta\t1\nu2\t\xff\xfe\t1\nu2\tb\t1\n")
    events, n_malformed = safe_read_events(str(path), 0, DEFAULT_COLUMNS)

    assert n_malformed == 1
    assert events["item_id"].tolist() == ["a", "b"]
    assert events["offset"].tolist() == [0, 2]


def test_undecodable_line_fails_under_fail_policy(tmp_path):
    path = tmp_path / "p.tsv"
    path.write_bytes(b"u1\ta\t1\nu2\t\xff\t1\n")
    with pytest.raises(MalformedRowError) as exc_info:
        safe_read_events(str(path), 0, DEFAULT_COLUMNS, on_malformed="fail")

    assert exc_info.value.offset == 1


def test_rows_split_on_newline_only(tmp_path):
    path = tmp_path / "p.tsv"
    path.write_bytes("u1\tit em\t1\r\nu2\tb\x0bc\t1\nu3\td\t2".encode("utf-8"))
    events, n_malformed = safe_read_events(str(path), 0, DEFAULT_COLUMNS)

    assert n_malformed == 0
    assert events["item_id"].tolist() == ["it em", "b\x0bc", "d"]
    assert events["value"].tolist() == [1.0, 1.0, 2.0]
    assert events["offset"].tolist() == [0, 1, 2]


def test_other_action_rows_are_not_malformed(tmp_path):
    rows = ["u1\tview\ta\tx", "u2\tbuy\tb\t2", "u3\tbuy\tc\tbad"]
    path = write_rows(tmp_path / "p.tsv", rows)
    columns = ["user_id", "action", "item_id", "value"]

    events, n_malformed = safe_read_events(str(path), 0, columns, action="buy")
    assert n_malformed == 1
    assert events["item_id"].tolist() == ["b"]

    with pytest.raises(MalformedRowError) as exc_info:
        safe_read_events(str(path), 0, columns, action="buy", on_malformed="fail")
    assert exc_info.value.offset == 2
