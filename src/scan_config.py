import os
from dataclasses import dataclass, field
from typing import Optional, Tuple


DEFAULT_WORKERS = 4
DEFAULT_CHUNK_SIZE = 81920
DEFAULT_SYSTEM_FOLDERS = ("System Volume Information", "$RECYCLE.BIN")
IMAGE_BACKENDS = ("pillow", "opencv")


@dataclass
class ScanConfig:
    """扫描配置（全部由命令行参数填充）"""
    workers: int = DEFAULT_WORKERS
    logs_dir: str = field(default_factory=lambda: os.path.join(os.getcwd(), "logs"))
    processed_file_name: str = "Processed.json"
    system_folders: Tuple[str, ...] = DEFAULT_SYSTEM_FOLDERS
    ffmpeg_path: str = "ffmpeg"
    media_timeout: Optional[float] = None
    # ffmpeg 退出码为 0 但 stderr 有输出时是否判定为损坏
    fail_on_diagnostics: bool = True
    # ffmpeg 无法启动时是否放行（视为正常）
    permissive_when_unavailable: bool = True
    image_backend: str = "pillow"
    chunk_size: int = DEFAULT_CHUNK_SIZE
    queue_maxsize: int = 0
    report_file: Optional[str] = None

    @property
    def processed_file(self) -> str:
        return os.path.join(self.logs_dir, self.processed_file_name)

    def validate(self) -> None:
        """检查配置合法性，不合法时抛出 ValueError"""
        if self.workers < 1:
            raise ValueError(f"工作线程数必须 >= 1，当前为 {self.workers}")
        if self.media_timeout is not None and self.media_timeout <= 0:
            raise ValueError(f"超时时间必须为正数，当前为 {self.media_timeout}")
        if self.image_backend not in IMAGE_BACKENDS:
            raise ValueError(f"不支持的图片解码后端: {self.image_backend}")
        if self.chunk_size <= 0:
            raise ValueError(f"读取块大小必须为正数，当前为 {self.chunk_size}")
        if self.queue_maxsize < 0:
            raise ValueError(f"队列容量不能为负数，当前为 {self.queue_maxsize}")
