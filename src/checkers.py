import os
import subprocess
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import cv2
import numpy as np
from PIL import Image

from scan_logger import ScanLogger


# 支持的媒体格式
SUPPORTED_IMAGES = ('.jpg', '.jpeg', '.png', '.bmp', '.gif', '.tiff')
SUPPORTED_MEDIA = ('.mp4', '.mkv', '.avi', '.mov', '.wmv', '.mp3', '.flac', '.wav', '.aac')


@dataclass(frozen=True)
class Verdict:
    """单个文件的检测结论：正常，或损坏并附带原因"""
    ok: bool
    reason: str = ""

    @classmethod
    def intact(cls) -> "Verdict":
        return cls(True)

    @classmethod
    def corrupted(cls, reason: str) -> "Verdict":
        return cls(False, reason)


class PillowImageDecoder:
    """使用 Pillow 完整解码像素数据"""

    def decode(self, file_path: str) -> Tuple[int, int]:
        with Image.open(file_path) as img:
            # load() 会解码全部像素，截断的数据在这里才会报错
            img.load()
            return img.width, img.height


class OpenCVImageDecoder:
    """使用 OpenCV 解码；GIF 交给 Pillow 处理"""

    def __init__(self):
        self._fallback = PillowImageDecoder()

    def decode(self, file_path: str) -> Tuple[int, int]:
        if os.path.splitext(file_path)[1].lower() == '.gif':
            return self._fallback.decode(file_path)
        # np.fromfile + imdecode 可以处理非 ASCII 路径
        data = np.fromfile(file_path, dtype=np.uint8)
        frame = cv2.imdecode(data, cv2.IMREAD_UNCHANGED)
        if frame is None:
            raise ValueError("OpenCV 无法解码图片数据")
        height, width = frame.shape[:2]
        return width, height


def make_image_decoder(backend: str):
    if backend == "opencv":
        return OpenCVImageDecoder()
    return PillowImageDecoder()


class ImageChecker:
    kind = "IMAGE"

    def __init__(self, decoder=None):
        self.decoder = decoder or PillowImageDecoder()

    def check(self, file_path: str) -> Verdict:
        try:
            width, height = self.decoder.decode(file_path)
        except Exception as e:
            return Verdict.corrupted(str(e) or type(e).__name__)
        if width <= 0 or height <= 0:
            return Verdict.corrupted(f"无效图片尺寸: {width}x{height}")
        return Verdict.intact()


class MediaChecker:
    """
    调用 ffmpeg 完整解码音视频流并丢弃输出，只收集错误级别的诊断信息
    """
    kind = "MEDIA"

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        timeout: Optional[float] = None,
        fail_on_diagnostics: bool = True,
        permissive_when_unavailable: bool = True,
        logger: Optional[ScanLogger] = None,
    ):
        """
        :param ffmpeg_path: ffmpeg 可执行文件（需在 PATH 中或为绝对路径）
        :param timeout: 单个文件的解码超时（秒），None 表示不限制
        :param fail_on_diagnostics: 退出码为 0 但有诊断输出时是否判定为损坏
        :param permissive_when_unavailable: ffmpeg 无法启动时是否视为正常
        :param logger: 用于输出警告的日志记录器
        """
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout
        self.fail_on_diagnostics = fail_on_diagnostics
        self.permissive_when_unavailable = permissive_when_unavailable
        self.logger = logger

    def build_command(self, file_path: str) -> List[str]:
        return [self.ffmpeg_path, '-v', 'error', '-i', file_path, '-f', 'null', '-']

    def check(self, file_path: str) -> Verdict:
        try:
            result = subprocess.run(
                self.build_command(file_path),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            return Verdict.corrupted("timeout")
        except FileNotFoundError as e:
            # ffmpeg 未安装或不在 PATH 中：无法进行深度检测
            if self.logger is not None:
                self.logger.write(f"WARN: ffmpeg failed to run for {file_path}: {e}")
            if self.permissive_when_unavailable:
                return Verdict.intact()
            return Verdict.corrupted(f"ffmpeg unavailable: {e}")
        except OSError as e:
            # 找到了 ffmpeg 但无法启动（权限等问题）
            return Verdict.corrupted(f"ffmpeg failed to start: {e}")

        if result.returncode != 0:
            return Verdict.corrupted(f"exit code {result.returncode}")

        diagnostics = (result.stderr or "").strip()
        if diagnostics and self.fail_on_diagnostics:
            return Verdict.corrupted(diagnostics)
        return Verdict.intact()


class GenericChecker:
    """顺序读取整个文件，读到文件末尾且无错误即视为正常"""
    kind = "FILE"

    def __init__(self, chunk_size: int = 81920):
        self.chunk_size = chunk_size

    def check(self, file_path: str) -> Verdict:
        try:
            with open(file_path, 'rb') as f:
                while f.read(self.chunk_size):
                    pass
        except OSError as e:
            return Verdict.corrupted(str(e))
        return Verdict.intact()


class CheckerRegistry:
    """按扩展名（不区分大小写）选择检测器，未登记的扩展名使用默认检测器"""

    def __init__(self, default):
        self.default = default
        self._by_extension: Dict[str, object] = {}

    def register(self, extensions: Iterable[str], checker) -> None:
        for ext in extensions:
            ext = ext.lower()
            if not ext.startswith('.'):
                ext = f".{ext}"
            self._by_extension[ext] = checker

    def checker_for(self, file_path: str):
        ext = os.path.splitext(file_path)[1].lower()
        return self._by_extension.get(ext, self.default)

    def check(self, file_path: str) -> Verdict:
        try:
            return self.checker_for(file_path).check(file_path)
        except Exception as e:
            return Verdict.corrupted(str(e) or type(e).__name__)


def build_registry(config, logger: Optional[ScanLogger] = None) -> CheckerRegistry:
    """根据扫描配置构建默认的检测器注册表"""
    registry = CheckerRegistry(GenericChecker(chunk_size=config.chunk_size))
    registry.register(SUPPORTED_IMAGES, ImageChecker(make_image_decoder(config.image_backend)))
    registry.register(
        SUPPORTED_MEDIA,
        MediaChecker(
            ffmpeg_path=config.ffmpeg_path,
            timeout=config.media_timeout,
            fail_on_diagnostics=config.fail_on_diagnostics,
            permissive_when_unavailable=config.permissive_when_unavailable,
            logger=logger,
        ),
    )
    return registry
