import os
from pathlib import Path

import pytest

from path_collector import PathCollector
from scan_logger import ScanLogger
from scan_session import ScanSession
from state_store import ProcessedStore
from work_queue import WorkQueue

from conftest import write_file


SYSTEM_FOLDERS = ("System Volume Information", "$RECYCLE.BIN")


@pytest.fixture
def session(tmp_path: Path):
    logger = ScanLogger(str(tmp_path / "run.log"))
    processed = ProcessedStore(str(tmp_path / "Processed.json"), logger=logger)
    yield ScanSession(1, processed, logger)
    logger.close()


def _collect(root: Path, session: ScanSession):
    queue = WorkQueue()
    collector = PathCollector(str(root), queue, session, system_folders=SYSTEM_FOLDERS)
    queued = collector.collect()
    assert queue.closed
    return queued, sorted(queue)


def test_collects_root_and_nested_files(tmp_path: Path, session):
    root = tmp_path / "root"
    write_file(root / "top.txt", b"1")
    write_file(root / "a" / "b" / "deep.bin", b"2")
    write_file(root / "a" / "mid.jpg", b"3")

    queued, files = _collect(root, session)
    assert queued == 3
    assert files == sorted(str(p) for p in (root / "top.txt", root / "a" / "b" / "deep.bin", root / "a" / "mid.jpg"))
    assert session.stats().files_total == 3


def test_skips_hidden_and_system_folders(tmp_path: Path, session):
    root = tmp_path / "root"
    write_file(root / "keep.txt", b"k")
    write_file(root / ".git" / "config", b"x")
    write_file(root / "system volume information" / "tracking.log", b"x")
    write_file(root / "$Recycle.Bin" / "deleted.txt", b"x")
    write_file(root / "nested" / "$RECYCLE.BIN.old" / "kept.txt", b"k")

    _, files = _collect(root, session)
    assert files == sorted([str(root / "keep.txt"), str(root / "nested" / "$RECYCLE.BIN.old" / "kept.txt")])


def test_skips_already_processed_files(tmp_path: Path, session):
    root = tmp_path / "root"
    write_file(root / "Done.TXT", b"d")
    write_file(root / "new.txt", b"n")
    session.processed.add(str(root / "done.txt"))

    queued, files = _collect(root, session)
    assert queued == 1
    assert files == [str(root / "new.txt")]
    assert session.stats().files_total == 1


def test_empty_root_closes_queue(tmp_path: Path, session):
    root = tmp_path / "empty"
    root.mkdir()
    queued, files = _collect(root, session)
    assert queued == 0
    assert files == []


def test_permission_error_skips_only_that_directory(tmp_path: Path, session, monkeypatch):
    root = tmp_path / "root"
    write_file(root / "ok" / "a.txt", b"a")
    write_file(root / "locked" / "secret.txt", b"s")
    real_scandir = os.scandir
    locked = str(root / "locked")

    def guarded_scandir(path):
        if str(path) == locked:
            raise PermissionError(13, "Permission denied", locked)
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", guarded_scandir)
    _, files = _collect(root, session)
    session.logger.close()

    assert files == [str(root / "ok" / "a.txt")]
    assert f"Access denied: {locked}" in (tmp_path / "run.log").read_text(encoding="utf-8")


def test_queue_closed_even_when_walk_fails(tmp_path: Path, session, monkeypatch):
    root = tmp_path / "root"
    write_file(root / "a.txt", b"a")
    queue = WorkQueue()
    collector = PathCollector(str(root), queue, session)

    def broken_walk():
        raise RuntimeError("disk vanished")
        yield  # pragma: no cover

    monkeypatch.setattr(collector, "walk", broken_walk)
    assert collector.collect() == 0
    assert queue.closed
    assert queue.get() is None
