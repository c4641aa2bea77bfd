import threading
from dataclasses import dataclass
from typing import List

from checkers import Verdict
from run_history import RunStats
from scan_logger import ScanLogger
from state_store import ProcessedStore


@dataclass(frozen=True)
class FileResult:
    path: str
    kind: str
    verdict: Verdict


class ScanSession:
    """
    一次扫描的共享状态：计数器、损坏文件列表、已处理集合、取消信号
    计数器与列表由同一把锁保护；已处理集合自带锁。
    """

    def __init__(self, run_id: int, processed: ProcessedStore, logger: ScanLogger):
        self.run_id = run_id
        self.processed = processed
        self.logger = logger
        self.cancel_event = threading.Event()
        self._lock = threading.Lock()
        self._files_total = 0
        self._files_verified = 0
        self._files_corrupted = 0
        self._corrupted_files: List[str] = []
        self._results: List[FileResult] = []

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def count_enqueued(self) -> int:
        with self._lock:
            self._files_total += 1
            return self._files_total

    def discard_enqueued(self, count: int) -> None:
        """取消时丢弃的排队文件不计入总数"""
        with self._lock:
            self._files_total -= count

    def record(self, path: str, verdict: Verdict, kind: str = "FILE") -> None:
        with self._lock:
            if verdict.ok:
                self._files_verified += 1
            else:
                self._files_corrupted += 1
                self._corrupted_files.append(path)
            self._results.append(FileResult(path, kind, verdict))

    def stats(self) -> RunStats:
        with self._lock:
            return RunStats(
                files_total=self._files_total,
                files_verified=self._files_verified,
                files_corrupted=self._files_corrupted,
            )

    def corrupted_files(self) -> List[str]:
        with self._lock:
            return list(self._corrupted_files)

    def results(self) -> List[FileResult]:
        with self._lock:
            return list(self._results)

