"""
任务存储与字节存储单元测试

每个模块完成后必须运行：pytest tests/unit/test_job_manager.py -v
"""

import threading

import pytest

from catalogforge.interfaces import PersistenceError
from catalogforge.models import (
    ExportSettings,
    FileType,
    IssueType,
    JobCounts,
    JobFile,
    JobIssue,
    JobStatus,
    LayoutType,
)
from catalogforge.pipeline import JobManager
from catalogforge.storage import LocalByteStore


class TestJobManager:
    """任务管理器测试"""

    def test_create_job(self, job_manager: JobManager):
        """测试创建任务"""
        job = job_manager.create_job("demo.myshopify.com", {"layoutType": "ONE_PER_PAGE"})
        assert job.status == JobStatus.QUEUED
        assert job.settings.layout_type == LayoutType.ONE_PER_PAGE
        assert (job_manager.storage_dir / "jobs" / job.job_id / "job.json").exists()

    def test_get_job_from_disk(self, job_manager: JobManager, temp_dir):
        """测试从磁盘加载"""
        job = job_manager.create_job("demo.myshopify.com", ExportSettings(grid_columns=2))
        job_manager.create_issue(job.job_id, JobIssue(type=IssueType.MISSING_COVER, product_id="p1"))

        reloaded = JobManager(temp_dir).get_job(job.job_id)

        assert reloaded is not None
        assert reloaded.settings.grid_columns == 2
        assert reloaded.issues[0].type == IssueType.MISSING_COVER

    def test_get_missing_job(self, job_manager: JobManager):
        """测试任务不存在"""
        assert job_manager.get_job("nope") is None
        with pytest.raises(PersistenceError):
            job_manager.update_job("nope", current_step="x")

    def test_progress_monotonic(self, job_manager: JobManager):
        """测试进度不回退"""
        job = job_manager.create_job("demo.myshopify.com")
        job_manager.update_job(job.job_id, status=JobStatus.RUNNING)
        job_manager.update_job(job.job_id, progress_percent=35)
        job_manager.update_job(job.job_id, progress_percent=5)
        assert job_manager.get_job(job.job_id).progress_percent == 35

    def test_new_run_resets_progress(self, job_manager: JobManager):
        """测试重新运行时进度从0开始"""
        job = job_manager.create_job("demo.myshopify.com")
        job_manager.update_job(job.job_id, status=JobStatus.RUNNING, progress_percent=100)
        job_manager.update_job(job.job_id, status=JobStatus.COMPLETED)
        job_manager.update_job(job.job_id, status=JobStatus.RUNNING, progress_percent=5)
        assert job_manager.get_job(job.job_id).progress_percent == 5

    def test_update_unknown_field(self, job_manager: JobManager):
        """测试不支持的字段"""
        job = job_manager.create_job("demo.myshopify.com")
        with pytest.raises(ValueError):
            job_manager.update_job(job.job_id, shop_domain="other")

    def test_increment_counts_concurrent(self, job_manager: JobManager):
        """测试并发自增不丢失"""
        job = job_manager.create_job("demo.myshopify.com")
        job_manager.set_counts(job.job_id, JobCounts(products_total=40))

        def _bump():
            for _ in range(10):
                job_manager.increment_counts(job.job_id, products_processed=1, images_downloaded=1)

        threads = [threading.Thread(target=_bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        counts = job_manager.get_job(job.job_id).counts
        assert counts.products_total == 40
        assert counts.products_processed == 40
        assert counts.images_downloaded == 40
        assert counts.images_failed == 0

    def test_mark_failed(self, job_manager: JobManager):
        """测试标记失败"""
        job = job_manager.create_job("demo.myshopify.com")
        job_manager.mark_failed(job.job_id, "PersistenceError: disk full")

        failed = job_manager.get_job(job.job_id)
        assert failed.status == JobStatus.FAILED
        assert failed.error_summary == "PersistenceError: disk full"
        assert failed.finished_at is not None

    def test_create_file(self, job_manager: JobManager):
        """测试登记产物"""
        job = job_manager.create_job("demo.myshopify.com")
        job_manager.create_file(
            job.job_id,
            JobFile.with_retention(FileType.PDF, f"jobs/{job.job_id}/catalog.pdf", "application/pdf", 123, 30),
        )
        assert job_manager.get_job(job.job_id).get_file(FileType.PDF).size_bytes == 123


class TestLocalByteStore:
    """本地字节存储测试"""

    def test_write_read(self, byte_store: LocalByteStore):
        """测试读写"""
        key = byte_store.write("jobs/j/a.bin", b"abc")
        assert key == "jobs/j/a.bin"
        assert byte_store.exists(key)
        assert byte_store.read(key) == b"abc"
        assert byte_store.size(key) == 3

    def test_open_writer(self, byte_store: LocalByteStore):
        """测试流式写入"""
        with byte_store.open_writer("jobs/j/stream.bin") as f:
            f.write(b"12")
            f.write(b"345")
        assert byte_store.size("jobs/j/stream.bin") == 5

    def test_missing_key(self, byte_store: LocalByteStore):
        """测试读取不存在的key"""
        assert not byte_store.exists("jobs/j/none.bin")
        with pytest.raises(PersistenceError):
            byte_store.read("jobs/j/none.bin")

    def test_path_traversal_rejected(self, byte_store: LocalByteStore):
        """测试越出根目录的key"""
        with pytest.raises(PersistenceError):
            byte_store.write("../outside.bin", b"x")
