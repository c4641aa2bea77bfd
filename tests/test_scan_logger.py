import json
import logging
from pathlib import Path

from media_integrity_checker import MediaIntegrityChecker
from run_history import RunHistory
from scan_config import ScanConfig
from scan_logger import ScanLogger

from conftest import write_file


def test_file_and_console_destinations(tmp_path: Path, capsys):
    log_file = tmp_path / "run.log"
    logger = ScanLogger(str(log_file))
    try:
        logger.write("OK: /data/a.bin")
        logger.console("3 Files queued")
        logger.warning("Failed to save report: disk full")
    finally:
        logger.close()

    assert log_file.read_text(encoding="utf-8").splitlines() == [
        "OK: /data/a.bin",
        "⚠ Failed to save report: disk full",
    ]
    out = capsys.readouterr().out
    assert "3 Files queued" in out
    assert "OK: /data/a.bin" in out


def test_unwritable_log_file_is_swallowed(tmp_path: Path, capsys, monkeypatch):
    monkeypatch.setattr(logging, "raiseExceptions", False)
    logger = ScanLogger(str(tmp_path / "no-such-dir" / "run.log"))
    try:
        logger.write("CORRUPTED: /data/b.mp4 -> exit code 1")
        logger.write("second line")
    finally:
        logger.close()

    out = capsys.readouterr().out
    assert "CORRUPTED: /data/b.mp4 -> exit code 1" in out
    assert "second line" in out
    assert not (tmp_path / "no-such-dir").exists()


def test_scan_finishes_when_run_log_cannot_be_written(tmp_path: Path, capsys, monkeypatch):
    monkeypatch.setattr(logging, "raiseExceptions", False)
    broken_log = str(tmp_path / "no-such-dir" / "run.log")
    monkeypatch.setattr(RunHistory, "log_path", lambda self, run_id: broken_log)

    root = tmp_path / "root"
    write_file(root / "a.txt", b"a")
    write_file(root / "b.txt", b"b")
    checker = MediaIntegrityChecker(str(root), config=ScanConfig(logs_dir=str(tmp_path / "logs")))
    record = checker.run()

    assert record.stats.files_total == 2
    assert record.stats.files_verified == 2
    data = json.loads((tmp_path / "logs" / "run_1.json").read_text(encoding="utf-8"))
    assert data["stats"]["filesVerified"] == 2
    out = capsys.readouterr().out
    assert "--- SUMMARY ---" in out
    assert "Files total: 2" in out
