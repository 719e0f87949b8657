import pytest

from matrix_pipeline.schemas import PrepareOptions


def write_rows(path, rows, delimiter="\t"):
    """Write rows (tuples of fields, or raw strings) to a text file, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [r if isinstance(r, str) else delimiter.join(str(f) for f in r) for r in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def action_root(tmp_path):
    return tmp_path / "actions"


@pytest.fixture
def make_options(tmp_path, action_root):
    def _make(**overrides):
        params = {
            "input_root": str(action_root),
            "output_root": str(tmp_path / "out"),
            "primary_prefs_path": "primary",
            "secondary_prefs_path": "secondary",
            "num_workers": 1,
        }
        params.update(overrides)
        return PrepareOptions(**params)

    return _make
