import os
import subprocess
from pathlib import Path

import pytest
from PIL import Image


def write_file(path: Path, content: bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


def write_image(path: Path, fmt: str = "PNG", size=(32, 24)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, (200, 30, 60)).save(path, format=fmt)
    return path


class FakeFFmpeg:
    """替代 subprocess.run：文件名含 "bad" 时返回非零退出码，含 "noisy" 时输出诊断信息"""

    def __init__(self):
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append((cmd, kwargs))
        file_path = cmd[cmd.index("-i") + 1]
        name = os.path.basename(file_path)
        if "bad" in name:
            return subprocess.CompletedProcess(cmd, 1, stdout=None, stderr="Invalid data found when processing input\n")
        if "noisy" in name:
            return subprocess.CompletedProcess(cmd, 0, stdout=None, stderr="[mp3 @ 0x1] Header missing\n")
        return subprocess.CompletedProcess(cmd, 0, stdout=None, stderr="")


@pytest.fixture
def fake_ffmpeg(monkeypatch):
    fake = FakeFFmpeg()
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


@pytest.fixture
def missing_ffmpeg(monkeypatch):
    def _raise(cmd, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", cmd[0])

    monkeypatch.setattr(subprocess, "run", _raise)
