import os
from typing import Iterable, Iterator, List, Tuple

from scan_session import ScanSession
from work_queue import QueueClosed, WorkQueue


class PathCollector:
    """
    遍历目录树，把尚未处理过的文件放入工作队列
    """

    def __init__(self, root: str, queue: WorkQueue, session: ScanSession,
                 system_folders: Iterable[str] = ()):
        """
        :param root: 扫描根目录
        :param queue: 工作队列
        :param session: 扫描会话（已处理集合、计数器、日志）
        :param system_folders: 需要跳过的系统目录名（只比较目录名，不区分大小写）
        """
        self.root = os.path.abspath(root)
        self.queue = queue
        self.session = session
        self._system_folders = {name.casefold() for name in system_folders}

    def is_excluded_dir(self, name: str) -> bool:
        return name.startswith('.') or name.casefold() in self._system_folders

    def walk(self) -> Iterator[Tuple[str, List[str]]]:
        """
        深度优先遍历（不跟随符号链接），每个目录返回 (目录, 文件列表)
        无权限的目录记录日志后跳过，不影响其他目录。
        """
        log = self.session.logger
        stack = [self.root]
        while stack:
            current = stack.pop()
            files: List[str] = []
            subdirs: List[str] = []
            try:
                with os.scandir(current) as entries:
                    for entry in entries:
                        try:
                            if entry.is_dir(follow_symlinks=False):
                                if not self.is_excluded_dir(entry.name):
                                    subdirs.append(entry.path)
                            elif entry.is_file(follow_symlinks=False):
                                files.append(entry.path)
                        except OSError as e:
                            log.write(f"Skipping entry {entry.path}: {e}")
            except PermissionError as e:
                log.write(f"Access denied: {current} ({e})")
                continue
            except OSError as e:
                log.write(f"Skipping directory {current}: {e}")
                continue
            stack.extend(reversed(subdirs))
            yield current, files

    def collect(self) -> int:
        """
        执行收集；无论是否出错都会关闭队列，避免消费者永久等待
        :return: 本次放入队列的文件数
        """
        queued = 0
        try:
            for _, files in self.walk():
                for file_path in files:
                    if self.session.cancelled:
                        return queued
                    if file_path in self.session.processed:
                        continue
                    try:
                        self.queue.put(file_path)
                    except QueueClosed:
                        return queued
                    self.session.count_enqueued()
                    queued += 1
                self.session.logger.console(f"{len(self.queue)} Files queued")
        except Exception as e:
            self.session.logger.write(f"⚠ File collection aborted: {e}")
        finally:
            self.queue.close()
        return queued
