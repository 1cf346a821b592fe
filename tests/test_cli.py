import csv
import logging

import pytest

from moodpk.cli import run_cli
from moodpk.config import get_config


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    level, handlers = root.level, root.handlers[:]
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_writes_plasma_and_effect_csv(tmp_path):
    out = tmp_path / "curve.csv"
    run_cli([
        "--name", "sertraline", "--drug-class", "SSRI",
        "--half-life", "26", "--vd", "20", "--f", "0.44",
        "--dose", "50", "--every", "24", "--n", "7",
        "--hours", "168", "--points", "84", "--csv", str(out),
    ])

    with open(out, newline="") as f:
        rows = list(csv.reader(f))

    assert rows[0] == ["time_h", "plasma_ng_per_mL", "effect_ng_per_mL"]
    data = [[float(v) for v in row] for row in rows[1:]]
    assert len(data) == 85
    assert data[0] == [0.0, 0.0, 0.0]
    assert data[-1][0] == pytest.approx(168.0)
    assert all(p >= 0.0 and e >= 0.0 for _, p, e in data)
    assert max(p for _, p, _ in data) > 0.0


def test_rejects_invalid_regimen(tmp_path):
    with pytest.raises(SystemExit):
        run_cli(["--half-life", "12", "--vd", "5", "--dose", "-1", "--csv", str(tmp_path / "x.csv")])


def test_curve_points_default_comes_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("MOODPK_CURVE_POINTS", "10")
    get_config.cache_clear()
    try:
        out = tmp_path / "short.csv"
        run_cli(["--half-life", "12", "--vd", "5", "--dose", "50", "--csv", str(out)])
        with open(out, newline="") as f:
            rows = list(csv.reader(f))
        assert len(rows) == 1 + 11
    finally:
        get_config.cache_clear()
