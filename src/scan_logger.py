import logging
import sys
from typing import Optional


class RunLogFileHandler(logging.FileHandler):
    """延迟打开文件时的失败（目录不存在、磁盘已满等）也交给 handleError 处理"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            super().emit(record)
        except OSError:
            self.handleError(record)


class ScanLogger:
    """
    单次运行的日志记录器
    文件日志与控制台输出相互独立，各自由 logging Handler 的锁保证整行写入；
    写入失败由 Handler.handleError 吞掉，不会中断扫描。
    """

    def __init__(self, log_file: Optional[str] = None):
        """
        :param log_file: 本次运行的日志文件路径（追加写入）；为空时只输出到控制台
        """
        self.log_file = log_file
        # 直接实例化而不经 logging.getLogger 注册，运行结束后随实例一起回收
        self._file_logger = logging.Logger("media_integrity.run")
        self._console_logger = logging.Logger("media_integrity.console")
        formatter = logging.Formatter("%(message)s")

        for lg in (self._file_logger, self._console_logger):
            lg.setLevel(logging.INFO)
            lg.propagate = False

        if log_file:
            file_handler = RunLogFileHandler(log_file, mode="a", encoding="utf-8", delay=True)
            file_handler.setFormatter(formatter)
            self._file_logger.addHandler(file_handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        self._console_logger.addHandler(console_handler)

    def write(self, message: str, to_log: bool = True, to_console: bool = True) -> None:
        if to_log and self._file_logger.handlers:
            self._file_logger.info(message)
        if to_console:
            self._console_logger.info(message)

    def console(self, message: str) -> None:
        self.write(message, to_log=False, to_console=True)

    def warning(self, message: str) -> None:
        self.write(f"⚠ {message}")

    def close(self) -> None:
        for lg in (self._file_logger, self._console_logger):
            for handler in list(lg.handlers):
                lg.removeHandler(handler)
                handler.close()
