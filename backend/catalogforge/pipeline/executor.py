"""
流水线执行器 - 编排各阶段执行

职责：
1. 按顺序执行各阶段（抽取 → 下载 → PDF → 图片包）
2. 阶段开始时更新进度与当前步骤
3. 下载阶段后先持久化manifest，再生成PDF与图片包
4. 登记产物（带过期时间），按是否有下载失败设置 COMPLETED / PARTIAL

约定：
- 执行器从不设置 FAILED，异常直接抛给调用方（worker）
- 单图失败与合成失败在各模块内降级，不中断流水线

测试要点：
- test_execute_full_pipeline: 完整流水线执行
- test_partial_when_cover_missing: 缺封面时为 PARTIAL
- test_fallback_relabels_step: 分页兜底时的步骤文本
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx

from ..config import RuntimeConfig, get_config
from ..doc_gen import CatalogPdfRenderer
from ..extraction import ProductExtractor
from ..images import ImageAcquirer
from ..interfaces import IByteStore, ICatalogSource, IJobStore, PersistenceError
from ..models import FileType, Job, JobFile, JobStatus
from ..models.job import utcnow
from ..processing import build_grouped_items, build_product_record, sort_records
from .packager import ArchiveBuilder, build_manifest, write_manifest
from .stages import (
    CATALOG_STAGES,
    COMPLETED_LABEL,
    FALLBACK_LABEL,
    PipelineStage,
    StageEnum,
)

logger = logging.getLogger(__name__)


class PipelineExecutor:
    """流水线执行器"""

    def __init__(
        self,
        job_store: IJobStore,
        byte_store: IByteStore,
        catalog_source: ICatalogSource,
        config: RuntimeConfig | None = None,
        *,
        image_transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or get_config()
        self.job_store = job_store
        self.byte_store = byte_store

        self.extractor = ProductExtractor(
            catalog_source,
            poll_interval_sec=self.config.timeouts.bulk_poll_interval_sec,
            max_wait_sec=self.config.timeouts.bulk_max_wait_sec,
            sleep=sleep,
            clock=clock,
        )
        self.acquirer = ImageAcquirer(
            job_store,
            byte_store,
            workers=self.config.concurrency.image_workers,
            attempts=self.config.retries.image_attempts,
            retry_backoff_sec=self.config.retries.retry_backoff_ms / 1000,
            timeout=self.config.timeouts.http_timeout_sec,
            transport=image_transport,
        )

    def execute(self, job_id: str) -> Job:
        """执行流水线，返回最终任务状态"""
        job = self._require_job(job_id)
        self.job_store.update_job(
            job_id,
            status=JobStatus.RUNNING,
            started_at=utcnow(),
            finished_at=None,
            error_summary=None,
        )
        logger.info(f"[{job_id}] 任务开始: shop={job.shop_domain}")

        context: dict[str, Any] = {
            "settings": job.settings,
            "records": [],
            "has_failures": False,
        }

        for stage in CATALOG_STAGES:
            self._execute_stage(job, stage, context)

        status = JobStatus.PARTIAL if context["has_failures"] else JobStatus.COMPLETED
        self.job_store.update_job(
            job_id,
            status=status,
            progress_percent=100,
            current_step=COMPLETED_LABEL,
            finished_at=utcnow(),
        )
        logger.info(f"[{job_id}] 任务完成: {status.value}")
        return self._require_job(job_id)

    def _execute_stage(self, job: Job, stage: PipelineStage, context: dict) -> None:
        """执行单个阶段"""
        self.job_store.update_job(
            job.job_id,
            progress_percent=stage.progress_start,
            current_step=stage.label,
        )
        logger.info(f"[{job.job_id}] 开始阶段: {stage.name}")

        try:
            if stage.name == StageEnum.COLLECT_PRODUCTS.value:
                self._stage_collect(job, context)

            elif stage.name == StageEnum.DOWNLOAD_COVERS.value:
                self._stage_download(job, context)

            elif stage.name == StageEnum.BUILD_PDF.value:
                self._stage_build_pdf(job, context)

            elif stage.name == StageEnum.PACKAGE_ZIP.value:
                self._stage_package(job, context)

        except Exception as e:
            logger.error(f"[{job.job_id}] 阶段失败 {stage.name}: {e}")
            raise

    def _stage_collect(self, job: Job, context: dict) -> None:
        """抽取商品并解析价格/封面，按设置排序"""
        settings = context["settings"]

        def _on_fallback() -> None:
            self.job_store.update_job(job.job_id, current_step=FALLBACK_LABEL)

        products = self.extractor.extract(settings, on_fallback=_on_fallback)
        records = [build_product_record(p, settings) for p in products]
        context["records"] = sort_records(records, settings.sort_order)
        logger.info(f"[{job.job_id}] 商品抽取完成: {len(records)} 个")

    def _stage_download(self, job: Job, context: dict) -> None:
        """并发下载封面，然后持久化manifest"""
        result = self.acquirer.acquire(job.job_id, context["records"])
        context["records"] = result.records
        context["has_failures"] = result.has_failures

        manifest = build_manifest(job, result.records)
        key = write_manifest(self.byte_store, job.job_id, manifest)
        self._register_file(job.job_id, FileType.MANIFEST, key, "application/json")

    def _stage_build_pdf(self, job: Job, context: dict) -> None:
        """分组并生成目录PDF"""
        settings = context["settings"]
        items = build_grouped_items(context["records"], settings)

        renderer = CatalogPdfRenderer(
            self.byte_store, settings, font_path=self.config.pdf.font_path
        )
        rendered = renderer.render(items)

        key = self.byte_store.write(f"jobs/{job.job_id}/catalog.pdf", rendered.data)
        self._register_file(job.job_id, FileType.PDF, key, "application/pdf")
        logger.info(f"[{job.job_id}] PDF生成完成: {rendered.page_count} 页")

    def _stage_package(self, job: Job, context: dict) -> None:
        """生成图片包"""
        builder = ArchiveBuilder(self.byte_store, context["settings"])
        result = builder.build(job.job_id, context["records"])
        self.job_store.create_file(job.job_id, JobFile.with_retention(
            FileType.IMAGES_ZIP,
            result.storage_key,
            "application/zip",
            result.size_bytes,
            self.config.lifecycle.retention_days,
        ))

    def _register_file(
        self,
        job_id: str,
        file_type: FileType,
        key: str,
        content_type: str,
    ) -> None:
        self.job_store.create_file(job_id, JobFile.with_retention(
            file_type,
            key,
            content_type,
            self.byte_store.size(key),
            self.config.lifecycle.retention_days,
        ))

    def _require_job(self, job_id: str) -> Job:
        job = self.job_store.get_job(job_id)
        if job is None:
            raise PersistenceError(f"任务不存在: {job_id}")
        return job
