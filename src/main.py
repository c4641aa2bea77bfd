import argparse
import sys
from typing import List, Optional

from media_integrity_checker import MediaIntegrityChecker
from scan_config import DEFAULT_WORKERS, IMAGE_BACKENDS, ScanConfig


def build_parser() -> argparse.ArgumentParser:
    # 命令行参数配置
    parser = argparse.ArgumentParser(description="媒体文件完整性检测工具（支持断点续扫与运行对比）")
    parser.add_argument("root", help="检测目标目录（递归扫描全部子目录）")
    parser.add_argument("--workers", type=int, default=DEFAULT_WORKERS, help=f"并行检测线程数（默认 {DEFAULT_WORKERS}）")
    parser.add_argument("--logs-dir", help="日志与状态文件目录（默认 ./logs）")
    parser.add_argument("--timeout", type=float, help="单个音视频文件的 ffmpeg 解码超时（秒，默认不限制）")
    parser.add_argument("--ffmpeg", default="ffmpeg", help="ffmpeg 可执行文件路径")
    parser.add_argument("--image-backend", choices=IMAGE_BACKENDS, default="pillow", help="图片解码后端")
    parser.add_argument("--lenient-diagnostics", action="store_true",
                        help="ffmpeg 退出码为 0 时忽略其诊断输出")
    parser.add_argument("--strict-launch", action="store_true",
                        help="ffmpeg 无法启动时将音视频文件判定为损坏（默认视为正常）")
    parser.add_argument("--report", help="将检测结果保存到指定文件（可选）")
    return parser


def config_from_args(args: argparse.Namespace) -> ScanConfig:
    config = ScanConfig(
        workers=args.workers,
        ffmpeg_path=args.ffmpeg,
        media_timeout=args.timeout,
        fail_on_diagnostics=not args.lenient_diagnostics,
        permissive_when_unavailable=not args.strict_launch,
        image_backend=args.image_backend,
        report_file=args.report,
    )
    if args.logs_dir:
        config.logs_dir = args.logs_dir
    return config


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    try:
        # 创建并运行检测工具
        checker = MediaIntegrityChecker(args.root, config=config_from_args(args))
    except ValueError as e:
        print(f"错误：{e}")
        sys.exit(1)

    try:
        checker.run()
    except KeyboardInterrupt:
        checker.cancel()
        print("扫描已中断")
        sys.exit(130)


if __name__ == "__main__":
    main()
