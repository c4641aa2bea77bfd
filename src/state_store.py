import json
import os
import threading
from typing import Dict, Iterable, List, Optional

from scan_logger import ScanLogger


def file_identity(path: str) -> str:
    """文件标识：绝对路径，比较时不区分大小写"""
    return os.path.abspath(path).casefold()


class ProcessedStore:
    """
    已处理文件集合（只增不减），每次新增后整体重写到 JSON 文件
    """

    def __init__(self, state_file: str, logger: Optional[ScanLogger] = None):
        """
        :param state_file: 持久化文件路径（JSON 数组）
        :param logger: 记录加载/保存失败的日志记录器
        """
        self.state_file = state_file
        self.logger = logger
        self._lock = threading.Lock()
        # 标识 -> 原始路径
        self._entries: Dict[str, str] = {}

    def load(self) -> int:
        """读取持久化文件；文件损坏或不可读时视为空集合。返回已加载的数量"""
        if not os.path.exists(self.state_file):
            return 0
        try:
            with open(self.state_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                data = list(data.keys())
            if not isinstance(data, list):
                raise ValueError(f"unexpected JSON type {type(data).__name__}")
            entries = {file_identity(p): p for p in data if isinstance(p, str)}
        except (OSError, ValueError) as e:
            self._log(f"⚠ Failed to load {os.path.basename(self.state_file)}: {e}", to_log=False)
            return 0

        with self._lock:
            self._entries.update(entries)
            count = len(self._entries)
        self._log(f"Loaded {count} already processed files.", to_log=False)
        return count

    def __contains__(self, path: str) -> bool:
        key = file_identity(path)
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def paths(self) -> List[str]:
        with self._lock:
            return sorted(self._entries.values())

    def add(self, path: str) -> bool:
        """
        标记文件为已处理并立即写盘
        :return: 写盘是否成功（失败只记录警告）
        """
        with self._lock:
            self._entries.setdefault(file_identity(path), path)
            try:
                self._persist(self._entries.values())
            except (OSError, TypeError, ValueError) as e:
                self._log(f"⚠ Failed to save {os.path.basename(self.state_file)}: {e}")
                return False
        return True

    def _persist(self, paths: Iterable[str]) -> None:
        # 先写临时文件再替换，避免写到一半崩溃留下损坏的状态文件
        tmp_file = f"{self.state_file}.tmp"
        with open(tmp_file, "w", encoding="utf-8") as f:
            json.dump(sorted(paths), f, indent=2, ensure_ascii=False)
        os.replace(tmp_file, self.state_file)

    def _log(self, message: str, to_log: bool = True) -> None:
        if self.logger is not None:
            self.logger.write(message, to_log=to_log, to_console=True)
