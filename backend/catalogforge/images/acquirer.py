"""
封面下载器 - 固定数量的异步worker并发下载封面图

职责：
1. 一个 asyncio.Queue + N 个worker任务，每条记录只被领取一次
2. 无封面URL：记 MISSING_COVER 问题，不访问网络
3. 最多重试 N 次（非2xx或网络错误消耗一次），耗尽后记 IMAGE_DOWNLOAD_FAILED 问题
4. 成功后写入 jobs/<job_id>/images/products/<handle>/cover.<ext>，返回带本地路径的新记录
5. 每条记录处理完原子自增计数：products_processed +1，下载成功/失败二选一 +1
6. 存储读写（问题、计数、图片字节）经 asyncio.to_thread 执行，不阻塞事件循环

测试要点：
- test_missing_cover_issue: 无封面不发请求
- test_retry_then_success: 前两次失败第三次成功，无问题记录
- test_retry_exhausted: 三次失败，记一条问题
- test_output_keeps_input_order: 输出顺序与输入一致
- test_invalid_url_consumes_attempts: 非法URL按下载失败处理，不中断任务
- test_store_calls_off_event_loop: 存储调用不在事件循环线程执行
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field

import httpx

from ..interfaces import IByteStore, IJobStore, NetworkError
from ..models import IssueSeverity, IssueType, JobCounts, JobIssue, ProductRecord

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_handle(record: ProductRecord) -> str:
    """文件名安全的商品标识（handle 优先，其次商品ID）"""
    for candidate in (record.handle, record.product_id):
        cleaned = _UNSAFE_CHARS.sub("-", candidate or "").strip("-.")
        if cleaned:
            return cleaned
    return "product"


def extension_for(content_type: str | None) -> str:
    """content-type 含 png 则为 png，否则 jpg"""
    return "png" if "png" in (content_type or "").lower() else "jpg"


def cover_storage_key(job_id: str, handle: str, extension: str) -> str:
    return f"jobs/{job_id}/images/products/{handle}/cover.{extension}"


@dataclass
class AcquisitionResult:
    """下载阶段输出"""
    records: list[ProductRecord] = field(default_factory=list)
    has_failures: bool = False


class ImageAcquirer:
    """封面下载器"""

    def __init__(
        self,
        job_store: IJobStore,
        byte_store: IByteStore,
        workers: int = 5,
        attempts: int = 3,
        retry_backoff_sec: float = 0.5,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.job_store = job_store
        self.byte_store = byte_store
        self.workers = max(1, workers)
        self.attempts = max(1, attempts)
        self.retry_backoff_sec = retry_backoff_sec
        self.timeout = timeout
        self._transport = transport

    def acquire(self, job_id: str, records: list[ProductRecord]) -> AcquisitionResult:
        """同步入口（在新的事件循环中运行）"""
        return asyncio.run(self.acquire_async(job_id, records))

    async def acquire_async(
        self,
        job_id: str,
        records: list[ProductRecord],
    ) -> AcquisitionResult:
        """
        并发下载全部封面

        Returns:
            AcquisitionResult: 与输入同序的记录，以及是否存在缺失/失败
        """
        self.job_store.set_counts(job_id, JobCounts(products_total=len(records)))

        handles = self._unique_handles(records)
        results: list[ProductRecord] = list(records)
        failures: list[str] = []

        queue: asyncio.Queue[int] = asyncio.Queue()
        for index in range(len(records)):
            queue.put_nowait(index)

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
            transport=self._transport,
        ) as client:

            async def worker() -> None:
                while True:
                    try:
                        index = queue.get_nowait()
                    except asyncio.QueueEmpty:
                        return
                    try:
                        updated = await self._process(
                            client, job_id, records[index], handles[index]
                        )
                        if updated is None:
                            failures.append(records[index].product_id)
                        else:
                            results[index] = updated
                    finally:
                        queue.task_done()

            tasks = [
                asyncio.create_task(worker())
                for _ in range(min(self.workers, len(records)) or 1)
            ]
            await asyncio.gather(*tasks)

        logger.info(
            f"封面下载完成: job={job_id} 共{len(records)}个, 失败/缺失{len(failures)}个"
        )
        return AcquisitionResult(records=results, has_failures=bool(failures))

    async def _process(
        self,
        client: httpx.AsyncClient,
        job_id: str,
        record: ProductRecord,
        handle: str,
    ) -> ProductRecord | None:
        """处理单条记录；失败或缺失返回None"""
        if not record.cover_url:
            await self._record_issue(job_id, record, IssueType.MISSING_COVER, {
                "reason": "No cover image found",
            })
            await self._count(job_id, images_failed=1)
            return None

        try:
            data, extension = await self._download(client, record.cover_url)
        except NetworkError as e:
            logger.warning(f"封面下载失败: job={job_id} product={record.product_id}: {e}")
            await self._record_issue(job_id, record, IssueType.IMAGE_DOWNLOAD_FAILED, {
                "url": record.cover_url,
                "error": str(e),
                "attempts": self.attempts,
            })
            await self._count(job_id, images_failed=1)
            return None

        key = await asyncio.to_thread(
            self.byte_store.write, cover_storage_key(job_id, handle, extension), data
        )
        await self._count(job_id, images_downloaded=1)
        return record.with_cover(key, f"images/{handle}.{extension}")

    async def _download(self, client: httpx.AsyncClient, url: str) -> tuple[bytes, str]:
        """下载（带重试），返回 (字节, 扩展名)"""
        last_error = "unknown error"

        for attempt in range(self.attempts):
            try:
                response = await client.get(url)
                if response.is_success:
                    return response.content, extension_for(response.headers.get("content-type"))
                last_error = f"HTTP {response.status_code}"
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                last_error = f"{type(e).__name__}: {e}"

            logger.debug(f"下载重试 {attempt + 1}/{self.attempts}: {url} ({last_error})")
            if attempt < self.attempts - 1 and self.retry_backoff_sec > 0:
                await asyncio.sleep(self.retry_backoff_sec)

        raise NetworkError(last_error)

    async def _count(self, job_id: str, **deltas: int) -> None:
        """每条记录计一次 products_processed"""
        await asyncio.to_thread(
            self.job_store.increment_counts, job_id, products_processed=1, **deltas
        )

    async def _record_issue(
        self,
        job_id: str,
        record: ProductRecord,
        issue_type: IssueType,
        details: dict,
    ) -> None:
        issue = JobIssue(
            severity=IssueSeverity.WARN,
            type=issue_type,
            product_id=record.product_id,
            product_handle=record.handle,
            details=details,
        )
        await asyncio.to_thread(self.job_store.create_issue, job_id, issue)

    @staticmethod
    def _unique_handles(records: list[ProductRecord]) -> list[str]:
        """重复的 handle 追加序号，保证归档条目不冲突"""
        used: set[str] = set()
        handles: list[str] = []
        for record in records:
            base = safe_handle(record)
            handle, suffix = base, 1
            while handle in used:
                suffix += 1
                handle = f"{base}-{suffix}"
            used.add(handle)
            handles.append(handle)
        return handles
