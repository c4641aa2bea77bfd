import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from run_history import RunHistory, RunRecord, RunStats, corruption_delta, new_record


def _record(run_id: int, corrupted) -> RunRecord:
    return RunRecord(
        run_id=run_id,
        timestamp=datetime(2024, 1, run_id, tzinfo=timezone.utc),
        stats=RunStats(len(corrupted), 0, len(corrupted)),
        corrupted_files=list(corrupted),
    )


def test_next_run_id_starts_at_one(tmp_path: Path):
    assert RunHistory(str(tmp_path / "logs")).next_run_id() == 1


def test_next_run_id_uses_highest_existing(tmp_path: Path):
    for name in ("run_1.json", "run_2.json", "run_7.log", "run_x.json", "other.json"):
        (tmp_path / name).write_text("{}", encoding="utf-8")
    assert RunHistory(str(tmp_path)).next_run_id() == 8


def test_save_writes_expected_json(tmp_path: Path):
    history = RunHistory(str(tmp_path))
    record = new_record(3, RunStats(5, 4, 1), ["/data/b.mp4"])
    history.save(record)

    data = json.loads((tmp_path / "run_3.json").read_text(encoding="utf-8"))
    assert data["runId"] == 3
    assert data["stats"] == {"filesTotal": 5, "filesVerified": 4, "filesCorrupted": 1}
    assert data["corruptedFiles"] == ["/data/b.mp4"]
    assert datetime.fromisoformat(data["timestamp"]).tzinfo is not None

    loaded = history.load(3)
    assert loaded == record


def test_load_missing_returns_none(tmp_path: Path):
    assert RunHistory(str(tmp_path)).load(4) is None


def test_load_invalid_record_raises_value_error(tmp_path: Path):
    (tmp_path / "run_1.json").write_text(json.dumps({"runId": 1}), encoding="utf-8")
    with pytest.raises(ValueError):
        RunHistory(str(tmp_path)).load(1)

    (tmp_path / "run_2.json").write_text("garbage", encoding="utf-8")
    with pytest.raises(ValueError):
        RunHistory(str(tmp_path)).load(2)


def test_corruption_delta_is_case_insensitive_difference():
    previous = _record(1, ["/data/A.mp4", "/data/B.mp4"])
    current = _record(2, ["/data/b.MP4", "/data/C.mp4"])
    assert corruption_delta(current, previous) == ["/data/C.mp4"]


def test_corruption_delta_empty_when_nothing_new():
    previous = _record(1, ["/data/a.mp4"])
    current = _record(2, ["/data/a.mp4"])
    assert corruption_delta(current, previous) == []
