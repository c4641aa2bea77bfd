import os
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List, Optional

from checkers import CheckerRegistry, Verdict, build_registry
from path_collector import PathCollector
from run_history import RunHistory, RunRecord, corruption_delta, new_record
from scan_config import ScanConfig
from scan_logger import ScanLogger
from scan_session import ScanSession
from state_store import ProcessedStore, file_identity
from work_queue import WorkQueue


class MediaIntegrityChecker:
    """媒体文件完整性检测工具类（多线程、可断点续扫、跨运行对比）"""

    def __init__(self, directory: str, config: Optional[ScanConfig] = None,
                 registry: Optional[CheckerRegistry] = None):
        """
        初始化检测工具
        :param directory: 检测目标目录
        :param config: 扫描配置，为空时使用默认值
        :param registry: 检测器注册表，为空时按配置构建
        """
        self.directory = os.path.abspath(directory)
        self.config = config or ScanConfig()
        self.config.validate()

        # 验证目录有效性（此时尚未写入任何文件）
        if not os.path.isdir(self.directory):
            raise ValueError(f"目录 '{self.directory}' 不存在或不是有效目录")

        self._registry = registry
        self.history = RunHistory(self.config.logs_dir)
        self.session: Optional[ScanSession] = None
        self.record: Optional[RunRecord] = None
        self.new_corrupted: List[str] = []
        self._queue: Optional[WorkQueue] = None
        self._cancel_lock = threading.Lock()

    def cancel(self) -> None:
        """请求中止扫描：停止收集、丢弃排队文件，已开始的文件检测完后工作线程退出"""
        with self._cancel_lock:
            if self.session is None or self.session.cancelled:
                return
            self.session.cancel_event.set()
            if self._queue is not None:
                self.session.discard_enqueued(self._queue.cancel())
            self.session.logger.write("ℹ Scan cancelled, finishing in-flight files.")

    def _worker(self, worker_id: int) -> None:
        session = self.session
        session.logger.console(f"Worker {worker_id} started")
        # 取消时队列会被清空并关闭，已取出的文件仍然检测完毕
        for file_path in self._queue:
            checker = self._registry.checker_for(file_path)
            try:
                verdict = self._registry.check(file_path)
            except Exception as e:
                verdict = Verdict.corrupted(str(e) or type(e).__name__)

            session.record(file_path, verdict, getattr(checker, "kind", "FILE"))
            # 无论结果如何都标记为已处理，损坏文件不会在下次运行中重复检测
            session.processed.add(file_path)

            if verdict.ok:
                session.logger.write(f"OK: {file_path}")
            elif verdict.reason:
                session.logger.write(f"CORRUPTED: {file_path} -> {verdict.reason}")
            else:
                session.logger.write(f"CORRUPTED: {file_path}")

    def run_checks(self) -> None:
        """启动收集线程与工作线程池，等待全部完成"""
        session = self.session
        self._queue = WorkQueue(maxsize=self.config.queue_maxsize)
        collector = PathCollector(
            self.directory, self._queue, session, system_folders=self.config.system_folders
        )
        session.logger.console("Collecting files...")

        collector_thread = threading.Thread(target=collector.collect, name="path-collector", daemon=True)
        collector_thread.start()

        with ThreadPoolExecutor(max_workers=self.config.workers, thread_name_prefix="integrity-worker") as pool:
            futures = [pool.submit(self._worker, i) for i in range(self.config.workers)]
            try:
                wait(futures)
            except KeyboardInterrupt:
                self.cancel()
                wait(futures)
            for future in futures:
                exc = future.exception()
                if exc is not None:
                    session.logger.warning(f"Worker failed: {exc}")
        collector_thread.join()

    def finish_run(self) -> RunRecord:
        """写入本次运行记录并与上一次运行对比"""
        session = self.session
        log = session.logger
        run_id = session.run_id

        previous: Optional[RunRecord] = None
        compare_error: Optional[Exception] = None
        if run_id > 1:
            try:
                previous = self.history.load(run_id - 1)
            except (OSError, ValueError) as e:
                compare_error = e

        corrupted = session.corrupted_files()
        if previous is not None:
            # 上次已判定损坏、本次未重新检测但仍存在的文件继续保留在损坏列表中
            checked = {file_identity(r.path) for r in session.results()}
            corrupted.extend(
                p for p in previous.corrupted_files
                if file_identity(p) not in checked and p in session.processed and os.path.exists(p)
            )
        record = new_record(run_id, session.stats(), corrupted)
        self.record = record

        try:
            self.history.save(record)
        except (OSError, TypeError, ValueError) as e:
            log.warning(f"Failed to save run JSON: {e}")

        self.new_corrupted = []
        if run_id == 1:
            log.write("ℹ First run detected. No comparison performed.")
        elif compare_error is not None:
            log.warning(f"Failed to compare with previous run: {compare_error}")
        elif previous is None:
            log.write("ℹ Previous run JSON not found for comparison.")
        else:
            self.new_corrupted = corruption_delta(record, previous)
            for file_path in self.new_corrupted:
                log.write(f"NEW CORRUPTED: {file_path}")
            log.console(f"🔎 Comparison done. {len(self.new_corrupted)} new corrupted files found.")

        stats = record.stats
        log.write("--- SUMMARY ---")
        log.write(f"Files total: {stats.files_total}")
        log.write(f"Files verified: {stats.files_verified}")
        log.write(f"Files corrupted: {stats.files_corrupted}")
        if run_id > 1:
            log.write(f"New corrupted (since last run): {len(self.new_corrupted)}")
        return record

    def generate_report(self) -> List[str]:
        """生成检测报告"""
        stats = self.record.stats
        report = [
            "=" * 80,
            "媒体文件完整性检测报告",
            "=" * 80,
            f"检测目录: {self.directory}",
            f"运行编号: {self.record.run_id}",
            f"检测总数: {stats.files_total} 个",
            f"正常文件: {stats.files_verified} 个",
            f"损坏文件: {stats.files_corrupted} 个",
            f"新增损坏: {len(self.new_corrupted)} 个",
            "\n详细结果:",
            "-" * 80,
            f"{'文件路径':<50} {'类型':<8} {'状态':<10} {'说明'}",
            "-" * 80
        ]

        for res in sorted(self.session.results(), key=lambda r: r.path):
            path = os.path.relpath(res.path, self.directory)
            # 处理长路径显示
            display_path = path if len(path) <= 50 else "..." + path[-47:]
            status = "✅ 正常" if res.verdict.ok else "❌ 损坏"
            report.append(f"{display_path:<50} {res.kind:<8} {status:<10} {res.verdict.reason}")

        return report

    def save_report(self, report: List[str]) -> None:
        """保存报告到文件"""
        if self.config.report_file:
            try:
                with open(self.config.report_file, "w", encoding="utf-8") as f:
                    f.write("\n".join(report))
            except OSError as e:
                self.session.logger.warning(f"Failed to save report: {e}")
                return
            self.session.logger.console(f"\n完整报告已保存到: {os.path.abspath(self.config.report_file)}")

    def run(self) -> RunRecord:
        """运行完整检测流程"""
        os.makedirs(self.config.logs_dir, exist_ok=True)
        run_id = self.history.next_run_id()
        log_file = self.history.log_path(run_id)
        logger = ScanLogger(log_file)
        try:
            logger.console(f"Scanning root folder: {self.directory}")
            logger.console(f"Run #{run_id} log: {log_file}")
            logger.console(f"Run #{run_id} json: {self.history.record_path(run_id)}")

            processed = ProcessedStore(self.config.processed_file, logger=logger)
            processed.load()
            if self._registry is None:
                self._registry = build_registry(self.config, logger=logger)
            self.session = ScanSession(run_id, processed, logger)

            try:
                self.run_checks()
            except Exception as e:
                logger.warning(f"Scan aborted: {e}")

            record = self.finish_run()
            if self.config.report_file:
                self.save_report(self.generate_report())
            logger.write(f"✅ Scan finished. Log saved to {log_file}")
            return record
        finally:
            logger.close()
