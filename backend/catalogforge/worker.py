"""
Worker入口 - 按任务ID执行一次导出

职责：
1. 由配置组装协作者（任务存储、字节存储、Shopify商品源）
2. 执行流水线
3. 未捕获异常时标记任务 FAILED（错误摘要 + 结束时间）并继续抛出

测试要点：
- test_run_marks_failed_on_error: 异常时标记失败并重新抛出
"""

from __future__ import annotations

import logging

from .config import RuntimeConfig, get_config
from .interfaces import IByteStore, ICatalogSource, IJobStore, PersistenceError
from .models import Job
from .pipeline import JobManager, PipelineExecutor
from .shopify import ShopifyCatalogSource, ShopifyGraphQLClient
from .storage import LocalByteStore

logger = logging.getLogger(__name__)

ERROR_SUMMARY_LIMIT = 500


def summarize_error(error: BaseException) -> str:
    """错误摘要（类型 + 消息，截断）"""
    message = str(error) or error.__class__.__name__
    summary = f"{error.__class__.__name__}: {message}"
    return summary[:ERROR_SUMMARY_LIMIT]


def build_catalog_source(config: RuntimeConfig, shop_domain: str) -> ShopifyCatalogSource:
    """由配置构建Shopify商品源"""
    client = ShopifyGraphQLClient(
        shop_domain or config.shopify.shop_domain,
        config.shopify.access_token,
        api_version=config.shopify.api_version,
        timeout=config.timeouts.http_timeout_sec,
        max_retries=config.retries.api_max_retries,
    )
    return ShopifyCatalogSource(client, page_size=config.shopify.page_size)


def run_catalog_job(
    job_id: str,
    *,
    config: RuntimeConfig | None = None,
    job_store: IJobStore | None = None,
    byte_store: IByteStore | None = None,
    catalog_source: ICatalogSource | None = None,
    executor: PipelineExecutor | None = None,
) -> Job:
    """
    执行导出任务

    Args:
        job_id: 任务ID
        config/job_store/byte_store/catalog_source: 可注入的协作者，缺省由配置构建
        executor: 可注入的执行器（优先于其他协作者）

    Raises:
        任何未捕获异常（任务已被标记为 FAILED）
    """
    config = config or get_config()
    job_store = job_store or JobManager(config.storage_dir)

    owned_source: ShopifyCatalogSource | None = None

    try:
        if executor is None:
            if catalog_source is None:
                job = job_store.get_job(job_id)
                owned_source = build_catalog_source(config, job.shop_domain if job else "")
            executor = PipelineExecutor(
                job_store,
                byte_store or LocalByteStore(config.storage_dir),
                catalog_source or owned_source,
                config,
            )
        return executor.execute(job_id)

    except Exception as e:
        logger.exception(f"任务执行失败: {job_id}")
        try:
            if job_store.get_job(job_id) is not None:
                job_store.mark_failed(job_id, summarize_error(e))
        except PersistenceError as mark_error:
            logger.error(f"任务失败状态写入失败: {job_id}: {mark_error}")
        raise
    finally:
        if owned_source is not None:
            owned_source.client.close()
