"""
模块接口契约 - 定义外部协作者的抽象接口与异常

设计原则：
1. 核心流水线只通过窄接口访问商品源、字节存储与任务存储
2. 每个接口定义清晰的输入输出类型
3. 便于单元测试和mock替换

使用方式：
    from catalogforge.interfaces import IByteStore

    class S3ByteStore(IByteStore):
        def write(self, key: str, data: bytes) -> str:
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import IO, TYPE_CHECKING, Any, Iterator

if TYPE_CHECKING:
    from .models import Job, JobCounts, JobFile, JobIssue


# ============================================================================
# 商品源接口
# ============================================================================

@dataclass
class BulkOperation:
    """Bulk操作状态快照"""
    id: str
    status: str
    url: str | None = None
    error_code: str | None = None


@dataclass
class ProductPage:
    """分页查询的一页结果"""
    nodes: list[dict[str, Any]] = field(default_factory=list)
    end_cursor: str | None = None
    has_next_page: bool = False


class ICatalogSource(ABC):
    """商品源接口 - 异步Bulk协议 + 游标分页兜底"""

    @abstractmethod
    def start_bulk_query(self, query: str) -> str:
        """
        提交Bulk查询

        Returns:
            Bulk操作ID

        Raises:
            ExtractionError: 平台拒绝提交
        """
        ...

    @abstractmethod
    def get_bulk_operation(self, operation_id: str) -> BulkOperation:
        """查询Bulk操作状态"""
        ...

    @abstractmethod
    def iter_bulk_results(self, url: str) -> Iterator[dict[str, Any]]:
        """
        流式读取Bulk结果（JSONL，每行一个对象）

        Args:
            url: 结果文件地址
        """
        ...

    @abstractmethod
    def fetch_products_page(
        self,
        search: str,
        cursor: str | None,
        include_collections: bool,
    ) -> ProductPage:
        """
        游标分页查询一页商品

        Args:
            search: 商品筛选条件
            cursor: 上一页最后的游标（首页为None）
            include_collections: 是否查询所属集合
        """
        ...


# ============================================================================
# 存储接口
# ============================================================================

class IByteStore(ABC):
    """字节存储接口 - 所有产物写在任务前缀下"""

    @abstractmethod
    def write(self, key: str, data: bytes) -> str:
        """写入并返回存储key"""
        ...

    @abstractmethod
    def read(self, key: str) -> bytes:
        """读取"""
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        """判断key是否存在"""
        ...

    @abstractmethod
    def open_writer(self, key: str) -> AbstractContextManager[IO[bytes]]:
        """以流方式写入（关闭后写入完成）"""
        ...

    @abstractmethod
    def size(self, key: str) -> int:
        """读取已写入对象的大小"""
        ...


class IJobStore(ABC):
    """任务存储接口 - 状态/进度/计数原子更新，问题只追加"""

    @abstractmethod
    def get_job(self, job_id: str) -> Job | None:
        """获取任务"""
        ...

    @abstractmethod
    def update_job(self, job_id: str, **fields: Any) -> Job:
        """更新任务字段（status/progress_percent/current_step/时间戳等）"""
        ...

    @abstractmethod
    def set_counts(self, job_id: str, counts: JobCounts) -> None:
        """整体设置计数（阶段开始时重置）"""
        ...

    @abstractmethod
    def increment_counts(
        self,
        job_id: str,
        *,
        products_processed: int = 0,
        images_downloaded: int = 0,
        images_failed: int = 0,
    ) -> JobCounts:
        """按字段原子自增计数"""
        ...

    @abstractmethod
    def create_issue(self, job_id: str, issue: JobIssue) -> None:
        """追加任务问题"""
        ...

    @abstractmethod
    def create_file(self, job_id: str, job_file: JobFile) -> None:
        """登记任务产物"""
        ...

    @abstractmethod
    def mark_failed(self, job_id: str, error_summary: str) -> None:
        """标记任务失败（调用方使用）"""
        ...


# ============================================================================
# 异常定义
# ============================================================================

class CatalogForgeError(Exception):
    """基础异常"""
    pass


class ExtractionError(CatalogForgeError):
    """Bulk抽取错误（超时/失败/取消），由分页兜底恢复"""
    pass


class CatalogAPIError(CatalogForgeError):
    """商品源API错误（HTTP/GraphQL）"""
    pass


class NetworkError(CatalogForgeError):
    """单张图片下载错误，重试耗尽后记为WARN问题"""
    pass


class CompositionError(CatalogForgeError):
    """价格角标合成或PDF图片嵌入错误，本地降级"""
    pass


class PersistenceError(CatalogForgeError):
    """字节存储/任务存储写入错误，不可恢复"""
    pass
