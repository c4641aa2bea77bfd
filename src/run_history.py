import json
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from state_store import file_identity


RUN_FILE_PATTERN = re.compile(r"^run_(\d+)\.(json|log)$")


@dataclass
class RunStats:
    files_total: int = 0
    files_verified: int = 0
    files_corrupted: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "filesTotal": self.files_total,
            "filesVerified": self.files_verified,
            "filesCorrupted": self.files_corrupted,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "RunStats":
        return cls(
            files_total=int(data["filesTotal"]),
            files_verified=int(data["filesVerified"]),
            files_corrupted=int(data["filesCorrupted"]),
        )


@dataclass(frozen=True)
class RunRecord:
    """单次运行的快照，写入后不再修改"""
    run_id: int
    timestamp: datetime
    stats: RunStats
    corrupted_files: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "runId": self.run_id,
            "timestamp": self.timestamp.isoformat(),
            "stats": self.stats.to_dict(),
            "corruptedFiles": list(self.corrupted_files),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "RunRecord":
        corrupted = data["corruptedFiles"]
        if not isinstance(corrupted, list):
            raise ValueError("corruptedFiles must be a list")
        return cls(
            run_id=int(data["runId"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            stats=RunStats.from_dict(data["stats"]),
            corrupted_files=[str(p) for p in corrupted],
        )


def corruption_delta(current: RunRecord, previous: RunRecord) -> List[str]:
    """本次损坏但上一次未损坏的文件（路径比较不区分大小写）"""
    previous_keys = {file_identity(p) for p in previous.corrupted_files}
    delta: List[str] = []
    seen = set()
    for path in current.corrupted_files:
        key = file_identity(path)
        if key in previous_keys or key in seen:
            continue
        seen.add(key)
        delta.append(path)
    return delta


class RunHistory:
    """logs 目录下的 run_<id>.json / run_<id>.log 记录"""

    def __init__(self, logs_dir: str):
        self.logs_dir = logs_dir

    def record_path(self, run_id: int) -> str:
        return os.path.join(self.logs_dir, f"run_{run_id}.json")

    def log_path(self, run_id: int) -> str:
        return os.path.join(self.logs_dir, f"run_{run_id}.log")

    def existing_run_ids(self) -> List[int]:
        try:
            names = os.listdir(self.logs_dir)
        except OSError:
            return []
        ids = set()
        for name in names:
            match = RUN_FILE_PATTERN.match(name)
            if match:
                ids.add(int(match.group(1)))
        return sorted(ids)

    def next_run_id(self) -> int:
        ids = self.existing_run_ids()
        return ids[-1] + 1 if ids else 1

    def save(self, record: RunRecord) -> None:
        with open(self.record_path(record.run_id), "w", encoding="utf-8") as f:
            json.dump(record.to_dict(), f, indent=2, ensure_ascii=False)

    def load(self, run_id: int) -> Optional[RunRecord]:
        """读取指定运行记录；文件不存在时返回 None，内容无法解析时抛出 ValueError"""
        path = self.record_path(run_id)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        try:
            return RunRecord.from_dict(data)
        except (KeyError, TypeError) as e:
            raise ValueError(f"invalid run record {path}: {e}") from e


def new_record(run_id: int, stats: RunStats, corrupted_files: List[str]) -> RunRecord:
    return RunRecord(
        run_id=run_id,
        timestamp=datetime.now(timezone.utc),
        stats=stats,
        corrupted_files=list(corrupted_files),
    )
