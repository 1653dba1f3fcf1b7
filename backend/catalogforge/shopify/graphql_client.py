"""
Shopify Admin GraphQL 客户端

职责：
1. 认证头与端点拼装
2. 限流/服务端错误重试（429/502/503/504，遵循 Retry-After）
3. HTTP错误与GraphQL errors 统一抛出 CatalogAPIError
4. Bulk结果文件流式下载（JSONL逐行）

测试要点：
- test_execute_returns_data: 正常返回data
- test_execute_retries_on_429: 限流重试
- test_execute_raises_on_graphql_errors: GraphQL错误
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Iterator

import httpx

from ..interfaces import CatalogAPIError

logger = logging.getLogger(__name__)


class ShopifyGraphQLClient:
    """
    Shopify Admin GraphQL 客户端

    Usage:
        with ShopifyGraphQLClient("my-store.myshopify.com", "shpat_xxx") as client:
            data = client.execute(query, {"cursor": None})
    """

    API_VERSION = "2025-01"
    MAX_RETRIES = 5
    RETRYABLE_STATUS_CODES = {429, 502, 503, 504}

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str | None = None,
        timeout: float = 30.0,
        max_retries: int | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        # 统一为 xxx.myshopify.com 形式
        shop = shop_domain.replace("https://", "").replace("http://", "").strip("/")
        if "." not in shop:
            shop = f"{shop}.myshopify.com"

        self.shop_domain = shop
        self.api_version = api_version or self.API_VERSION
        self.graphql_url = f"https://{shop}/admin/api/{self.api_version}/graphql.json"
        self.max_retries = max_retries or self.MAX_RETRIES
        self._sleep = sleep

        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            headers={
                "X-Shopify-Access-Token": access_token,
                "Content-Type": "application/json",
            },
            follow_redirects=True,
            transport=transport,
        )
        # 结果文件为预签名URL，不带认证头
        self._download_client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            transport=transport,
        )

    def __enter__(self) -> ShopifyGraphQLClient:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()
        self._download_client.close()

    def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        执行GraphQL请求

        Args:
            query: GraphQL查询或mutation
            variables: 变量

        Returns:
            响应中的 data 部分

        Raises:
            CatalogAPIError: HTTP错误、GraphQL错误或重试耗尽
        """
        payload: dict[str, Any] = {"query": query, "variables": variables or {}}

        for attempt in range(self.max_retries):
            try:
                response = self._client.post(self.graphql_url, json=payload)
            except httpx.HTTPError as e:
                raise CatalogAPIError(f"GraphQL请求失败: {e}") from e

            # 限流或服务端错误时重试
            if response.status_code in self.RETRYABLE_STATUS_CODES:
                retry_after = self._retry_after(response, attempt)
                logger.warning(
                    "HTTP %d on GraphQL, retry %d/%d in %.1fs",
                    response.status_code, attempt + 1, self.max_retries, retry_after,
                )
                self._sleep(retry_after)
                continue

            if response.status_code >= 400:
                raise CatalogAPIError(
                    f"GraphQL HTTP {response.status_code}: {response.text[:200]}"
                )

            try:
                body = response.json()
            except ValueError as e:
                raise CatalogAPIError(f"GraphQL响应不是JSON: {e}") from e

            if body.get("errors"):
                messages = ", ".join(
                    str(err.get("message", err)) if isinstance(err, dict) else str(err)
                    for err in body["errors"]
                )
                raise CatalogAPIError(f"GraphQL errors: {messages}")

            return body.get("data") or {}

        raise CatalogAPIError(f"GraphQL重试次数耗尽({self.max_retries})")

    def stream_jsonl(self, url: str) -> Iterator[dict[str, Any]]:
        """流式下载JSONL结果"""
        try:
            with self._download_client.stream("GET", url) as response:
                if response.status_code >= 400:
                    raise CatalogAPIError(f"Bulk结果下载失败: HTTP {response.status_code}")
                for line in response.iter_lines():
                    line = line.strip()
                    if not line:
                        continue
                    yield json.loads(line)
        except httpx.HTTPError as e:
            raise CatalogAPIError(f"Bulk结果下载失败: {e}") from e

    @staticmethod
    def _retry_after(response: httpx.Response, attempt: int) -> float:
        header = response.headers.get("Retry-After")
        try:
            return float(header) if header is not None else float(2 ** attempt)
        except ValueError:
            return float(2 ** attempt)
