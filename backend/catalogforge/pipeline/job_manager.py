"""
任务管理器 - 任务创建/查询/更新（IJobStore 的本地实现）

职责：
1. 创建任务并分配ID
2. 任务状态持久化（storage/jobs/<job_id>/job.json）
3. 进度/计数原子更新，问题与产物只追加

并发约定：
- 所有写操作在同一把锁内完成“读缓存→修改→落盘”
- 计数按字段自增，调用方不做整块读改写

测试要点：
- test_create_job: 创建任务
- test_get_job_from_disk: 从磁盘加载
- test_progress_monotonic: 进度不回退
- test_increment_counts_concurrent: 并发自增不丢失
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..config import get_config
from ..interfaces import IJobStore, PersistenceError
from ..models import (
    ExportSettings,
    Job,
    JobCounts,
    JobFile,
    JobIssue,
    JobStatus,
)
from ..models.job import utcnow

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {
    "status",
    "progress_percent",
    "current_step",
    "error_summary",
    "started_at",
    "finished_at",
}


class JobManager(IJobStore):
    """任务管理器实现"""

    def __init__(self, storage_dir: str | Path | None = None):
        self.storage_dir = Path(storage_dir) if storage_dir else get_config().storage_dir
        self._jobs: dict[str, Job] = {}  # 内存缓存
        self._lock = threading.RLock()

    def create_job(
        self,
        shop_domain: str,
        settings: ExportSettings | dict[str, Any] | None = None,
    ) -> Job:
        """创建任务"""
        if isinstance(settings, dict):
            settings = ExportSettings.model_validate(settings)

        job = Job(
            job_id=str(uuid.uuid4()),
            shop_domain=shop_domain,
            settings=settings or ExportSettings(),
        )

        with self._lock:
            self._jobs[job.job_id] = job
            self._persist_job(job)

        return job

    def get_job(self, job_id: str) -> Job | None:
        """获取任务"""
        with self._lock:
            # 先查缓存
            if job_id in self._jobs:
                return self._jobs[job_id]

            # 尝试从磁盘加载
            job = self._load_job(job_id)
            if job:
                self._jobs[job_id] = job

            return job

    def require_job(self, job_id: str) -> Job:
        """获取任务（不存在则报错）"""
        job = self.get_job(job_id)
        if job is None:
            raise PersistenceError(f"任务不存在: {job_id}")
        return job

    def update_job(self, job_id: str, **fields: Any) -> Job:
        """更新任务字段"""
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"不支持更新的字段: {sorted(unknown)}")

        with self._lock:
            job = self.require_job(job_id)

            # 进入RUNNING视为新一次运行，进度从0开始
            if fields.get("status") == JobStatus.RUNNING and job.status != JobStatus.RUNNING:
                job.progress_percent = 0

            # 一次运行内进度单调不减
            percent = fields.pop("progress_percent", None)
            if percent is not None:
                job.progress_percent = max(job.progress_percent, int(percent))

            for name, value in fields.items():
                setattr(job, name, value)

            self._persist_job(job)
            return job

    def set_counts(self, job_id: str, counts: JobCounts) -> None:
        """整体设置计数"""
        with self._lock:
            job = self.require_job(job_id)
            job.counts = counts.model_copy()
            self._persist_job(job)

    def increment_counts(
        self,
        job_id: str,
        *,
        products_processed: int = 0,
        images_downloaded: int = 0,
        images_failed: int = 0,
    ) -> JobCounts:
        """按字段原子自增计数"""
        with self._lock:
            job = self.require_job(job_id)
            job.counts.products_processed += products_processed
            job.counts.images_downloaded += images_downloaded
            job.counts.images_failed += images_failed
            self._persist_job(job)
            return job.counts.model_copy()

    def create_issue(self, job_id: str, issue: JobIssue) -> None:
        """追加任务问题"""
        with self._lock:
            job = self.require_job(job_id)
            job.issues.append(issue)
            self._persist_job(job)

    def create_file(self, job_id: str, job_file: JobFile) -> None:
        """登记任务产物"""
        with self._lock:
            job = self.require_job(job_id)
            job.files.append(job_file)
            self._persist_job(job)

    def mark_failed(self, job_id: str, error_summary: str) -> None:
        """标记任务失败"""
        self.update_job(
            job_id,
            status=JobStatus.FAILED,
            error_summary=error_summary,
            finished_at=utcnow(),
        )

    def _job_file(self, job_id: str) -> Path:
        return self.storage_dir / "jobs" / job_id / "job.json"

    def _persist_job(self, job: Job) -> None:
        """持久化任务"""
        job_file = self._job_file(job.job_id)
        try:
            job_file.parent.mkdir(parents=True, exist_ok=True)
            tmp_file = job_file.with_suffix(".json.tmp")
            with open(tmp_file, "w", encoding="utf-8") as f:
                json.dump(job.model_dump(mode="json"), f, ensure_ascii=False, indent=2)
            tmp_file.replace(job_file)
        except OSError as e:
            raise PersistenceError(f"任务保存失败: {job.job_id}: {e}") from e

    def _load_job(self, job_id: str) -> Job | None:
        """从磁盘加载任务"""
        job_file = self._job_file(job_id)

        if not job_file.exists():
            return None

        try:
            with open(job_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            return Job.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"任务文件无法解析: {job_file}: {e}")
            return None
