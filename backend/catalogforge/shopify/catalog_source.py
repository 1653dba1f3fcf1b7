"""
Shopify 商品源 - ICatalogSource 的 Admin GraphQL 实现

职责：
1. 提交Bulk查询（bulkOperationRunQuery），userErrors 转为 ExtractionError
2. 轮询Bulk操作状态（node(id) ... on BulkOperation）
3. 流式读取Bulk结果文件
4. 游标分页查询商品（Bulk失败时的兜底路径）

测试要点：
- test_start_bulk_query_user_errors: 提交被拒绝
- test_fetch_products_page: 分页字段与游标
"""

from __future__ import annotations

import logging
from typing import Any, Iterator

from ..extraction.queries import PRODUCT_NODE_FIELDS
from ..interfaces import BulkOperation, ExtractionError, ICatalogSource, ProductPage
from .graphql_client import ShopifyGraphQLClient

logger = logging.getLogger(__name__)

BULK_RUN_MUTATION = """
mutation RunBulkQuery($query: String!) {
  bulkOperationRunQuery(query: $query) {
    bulkOperation { id status }
    userErrors { field message }
  }
}"""

BULK_STATUS_QUERY = """
query BulkOperationStatus($id: ID!) {
  node(id: $id) {
    ... on BulkOperation {
      id
      status
      errorCode
      url
    }
  }
}"""


def build_products_page_query(include_collections: bool, page_size: int = 250) -> str:
    """构建分页查询文本（筛选条件与游标通过变量传入）"""
    collections = (
        "\n          collections(first: 10) { nodes { id title } }"
        if include_collections
        else ""
    )
    return f"""
query Products($query: String, $cursor: String) {{
  products(first: {page_size}, query: $query, after: $cursor) {{
    pageInfo {{ hasNextPage endCursor }}
    nodes {{{PRODUCT_NODE_FIELDS}{collections}
          variants(first: 250) {{ nodes {{ id title price }} }}
    }}
  }}
}}"""


class ShopifyCatalogSource(ICatalogSource):
    """基于 Admin GraphQL 的商品源"""

    def __init__(self, client: ShopifyGraphQLClient, page_size: int = 250):
        self.client = client
        self.page_size = page_size

    def start_bulk_query(self, query: str) -> str:
        data = self.client.execute(BULK_RUN_MUTATION, {"query": query})
        payload = data.get("bulkOperationRunQuery")
        if not payload:
            raise ExtractionError("Bulk操作提交无响应")

        user_errors = payload.get("userErrors") or []
        if user_errors:
            message = ", ".join(str(err.get("message", err)) for err in user_errors)
            raise ExtractionError(f"Bulk操作提交被拒绝: {message}")

        operation = payload.get("bulkOperation") or {}
        if not operation.get("id"):
            raise ExtractionError("Bulk操作提交未返回ID")

        logger.info(f"Bulk操作已提交: {operation['id']}")
        return operation["id"]

    def get_bulk_operation(self, operation_id: str) -> BulkOperation:
        data = self.client.execute(BULK_STATUS_QUERY, {"id": operation_id})
        node = data.get("node")
        if not node:
            raise ExtractionError(f"Bulk操作不存在: {operation_id}")

        return BulkOperation(
            id=node.get("id", operation_id),
            status=node.get("status", ""),
            url=node.get("url"),
            error_code=node.get("errorCode"),
        )

    def iter_bulk_results(self, url: str) -> Iterator[dict[str, Any]]:
        return self.client.stream_jsonl(url)

    def fetch_products_page(
        self,
        search: str,
        cursor: str | None,
        include_collections: bool,
    ) -> ProductPage:
        query = build_products_page_query(include_collections, self.page_size)
        data = self.client.execute(query, {"query": search, "cursor": cursor})

        payload = data.get("products")
        if not payload:
            return ProductPage()

        page_info = payload.get("pageInfo") or {}
        return ProductPage(
            nodes=list(payload.get("nodes") or []),
            end_cursor=page_info.get("endCursor"),
            has_next_page=bool(page_info.get("hasNextPage")),
        )
