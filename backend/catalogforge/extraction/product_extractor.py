"""
商品抽取器 - Bulk查询优先，失败时游标分页兜底

职责：
1. 按导出设置构建筛选条件与Bulk查询
2. 提交Bulk操作并定时轮询（固定间隔，硬超时）
3. 流式解析JSONL结果为商品累加器
4. Bulk超时/失败/取消或API错误时，切换到游标分页路径
5. 输出按商品ID去重

依赖：
- ICatalogSource: 商品源（Bulk协议 + 分页查询）

测试要点：
- test_children_before_parent: 子行先于父行也能重建
- test_bulk_timeout_falls_back: 超时后走分页兜底
- test_fallback_paginates_until_done: 分页直到 hasNextPage=false
- test_completed_without_url_is_empty: 无结果文件视为空结果
"""

from __future__ import annotations

import logging
import time
from typing import Callable

import httpx

from ..interfaces import CatalogForgeError, ExtractionError, ICatalogSource
from ..models import ExportSettings, ProductAccumulator
from .bulk_parser import AccumulatorStore, parse_bulk_lines
from .queries import build_bulk_query, build_product_search

logger = logging.getLogger(__name__)

BULK_TERMINAL_FAILURES = {"FAILED", "CANCELED", "EXPIRED"}


class ProductExtractor:
    """商品抽取器"""

    def __init__(
        self,
        source: ICatalogSource,
        poll_interval_sec: float = 2.0,
        max_wait_sec: float = 600.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.poll_interval_sec = poll_interval_sec
        self.max_wait_sec = max_wait_sec
        self._sleep = sleep
        self._clock = clock

    def extract(
        self,
        settings: ExportSettings,
        on_fallback: Callable[[], None] | None = None,
    ) -> list[ProductAccumulator]:
        """
        抽取商品

        Args:
            settings: 导出设置
            on_fallback: 切换到分页兜底时的回调（用于更新当前步骤）

        Returns:
            按商品ID去重的累加器列表
        """
        try:
            products = self.extract_bulk(settings)
            logger.info(f"Bulk抽取完成: {len(products)} 个商品")
            return products
        except (CatalogForgeError, httpx.HTTPError, ValueError) as e:
            logger.warning(f"Bulk抽取失败，切换分页查询: {e}")

        if on_fallback:
            on_fallback()

        products = self.extract_paginated(settings)
        logger.info(f"分页抽取完成: {len(products)} 个商品")
        return products

    def extract_bulk(self, settings: ExportSettings) -> list[ProductAccumulator]:
        """Bulk路径"""
        operation_id = self.source.start_bulk_query(build_bulk_query(settings))
        url = self._wait_for_bulk_result(operation_id)
        if url is None:
            return []
        return parse_bulk_lines(self.source.iter_bulk_results(url))

    def extract_paginated(self, settings: ExportSettings) -> list[ProductAccumulator]:
        """游标分页路径"""
        search = build_product_search(settings)
        store = AccumulatorStore()
        cursor: str | None = None
        pages = 0

        while True:
            page = self.source.fetch_products_page(
                search, cursor, settings.include_collections
            )
            pages += 1
            for node in page.nodes:
                if node.get("id"):
                    store.apply_page_node(node)

            if not page.has_next_page:
                break
            if not page.end_cursor or page.end_cursor == cursor:
                logger.warning(f"分页游标未前进，提前结束: 第{pages}页")
                break
            cursor = page.end_cursor

        logger.debug(f"分页查询共 {pages} 页")
        return store.products()

    def _wait_for_bulk_result(self, operation_id: str) -> str | None:
        """轮询直到完成；超时或失败抛出 ExtractionError"""
        started = self._clock()

        while True:
            if self._clock() - started > self.max_wait_sec:
                raise ExtractionError(
                    f"Bulk操作超时({self.max_wait_sec:.0f}s): {operation_id}"
                )

            operation = self.source.get_bulk_operation(operation_id)

            if operation.status == "COMPLETED":
                # 无结果文件：结果集为空
                return operation.url or None

            if operation.status in BULK_TERMINAL_FAILURES:
                raise ExtractionError(
                    f"Bulk操作{operation.status}: {operation_id}"
                    + (f" ({operation.error_code})" if operation.error_code else "")
                )

            self._sleep(self.poll_interval_sec)
