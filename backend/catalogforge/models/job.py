"""
任务模型 - 定义导出任务状态、计数、问题与产物

状态约定：
- RUNNING → COMPLETED / PARTIAL 仅由编排器设置
- FAILED 由调用方（worker）在未捕获异常时设置
- progress_percent 在一次运行内单调不减
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .settings import ExportSettings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """任务状态枚举"""
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    PARTIAL = "PARTIAL"


class IssueSeverity(str, Enum):
    """问题级别"""
    WARN = "WARN"
    ERROR = "ERROR"


class IssueType(str, Enum):
    """问题类型"""
    MISSING_COVER = "MISSING_COVER"
    IMAGE_DOWNLOAD_FAILED = "IMAGE_DOWNLOAD_FAILED"
    PRODUCT_SKIPPED = "PRODUCT_SKIPPED"


class FileType(str, Enum):
    """产物类型"""
    PDF = "PDF"
    IMAGES_ZIP = "IMAGES_ZIP"
    MANIFEST = "MANIFEST"


class JobCounts(BaseModel):
    """任务计数"""
    products_total: int = 0
    products_processed: int = 0
    images_downloaded: int = 0
    images_failed: int = 0


class JobIssue(BaseModel):
    """任务问题（只追加）"""
    severity: IssueSeverity = IssueSeverity.WARN
    type: IssueType
    product_id: str | None = None
    product_handle: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class JobFile(BaseModel):
    """任务产物记录"""
    type: FileType
    storage_key: str
    content_type: str
    size_bytes: int
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime

    @classmethod
    def with_retention(
        cls,
        file_type: FileType,
        storage_key: str,
        content_type: str,
        size_bytes: int,
        retention_days: int,
    ) -> JobFile:
        """按保留天数生成过期时间"""
        created_at = utcnow()
        return cls(
            type=file_type,
            storage_key=storage_key,
            content_type=content_type,
            size_bytes=size_bytes,
            created_at=created_at,
            expires_at=created_at + timedelta(days=retention_days),
        )


class Job(BaseModel):
    """导出任务实体"""
    job_id: str = Field(..., description="UUID")
    shop_domain: str
    settings: ExportSettings = Field(default_factory=ExportSettings)

    # 状态
    status: JobStatus = JobStatus.QUEUED
    progress_percent: int = 0
    current_step: str | None = None
    counts: JobCounts = Field(default_factory=JobCounts)
    error_summary: str | None = None

    # 问题与产物
    issues: list[JobIssue] = Field(default_factory=list)
    files: list[JobFile] = Field(default_factory=list)

    # 时间戳
    created_at: datetime = Field(default_factory=utcnow)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def get_file(self, file_type: FileType) -> JobFile | None:
        """按类型获取产物记录（取最新一条）"""
        for job_file in reversed(self.files):
            if job_file.type == file_type:
                return job_file
        return None
