"""
Bulk结果解析 - 将JSONL行重建为商品累加器

行类型判定（按顺序）：
1. 无 __parentId 且有 id → 商品行（覆盖标量字段，内联首图追加到图片列表）
2. 有 __parentId 且含 price 字段 → 款式行
3. 有 __parentId 且有 url → 图片行
4. 有 __parentId、title，且 id 含 "Collection" → 集合行

子行可能先于父行出现，累加器按ID惰性创建（upsert）。
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from ..models import CollectionRef, ProductAccumulator, ProductVariant

logger = logging.getLogger(__name__)


def _first_node_url(connection: dict[str, Any] | None) -> str | None:
    """images(first: 1) 连接中的首图URL（兼容 nodes / edges 两种形状）"""
    if not connection:
        return None
    nodes = connection.get("nodes")
    if nodes is None:
        nodes = [edge.get("node") or {} for edge in connection.get("edges") or []]
    for node in nodes:
        if node and node.get("url"):
            return node["url"]
    return None


def _connection_nodes(connection: dict[str, Any] | None) -> list[dict[str, Any]]:
    if not connection:
        return []
    if "nodes" in connection:
        return [n for n in connection["nodes"] or [] if n]
    return [e["node"] for e in connection.get("edges") or [] if e.get("node")]


class AccumulatorStore:
    """按商品ID upsert 的累加器集合（保持首次出现顺序）"""

    def __init__(self):
        self._products: dict[str, ProductAccumulator] = {}

    def __len__(self) -> int:
        return len(self._products)

    def get_or_create(self, product_id: str) -> ProductAccumulator:
        product = self._products.get(product_id)
        if product is None:
            product = ProductAccumulator(id=product_id)
            self._products[product_id] = product
        return product

    def apply_product_fields(self, node: dict[str, Any]) -> ProductAccumulator:
        """写入商品行的标量字段"""
        product = self.get_or_create(node["id"])
        product.title = node.get("title")
        product.handle = node.get("handle")
        product.vendor = node.get("vendor")
        product.product_type = node.get("productType")
        product.status = node.get("status")
        product.created_at = node.get("createdAt")
        product.updated_at = node.get("updatedAt")
        product.featured_image_url = (node.get("featuredImage") or {}).get("url")
        product.add_image_url(_first_node_url(node.get("images")))
        return product

    def apply_line(self, line: dict[str, Any]) -> None:
        """应用一行Bulk结果"""
        parent_id = line.get("__parentId")

        if not parent_id:
            if line.get("id"):
                self.apply_product_fields(line)
            return

        product = self.get_or_create(parent_id)

        if "price" in line:
            product.add_variant(ProductVariant(
                id=line.get("id", ""),
                title=line.get("title") or "",
                price=line.get("price"),
            ))
            return

        if line.get("url"):
            product.add_image_url(line["url"])

        line_id = str(line.get("id") or "")
        if line.get("title") and "Collection" in line_id:
            product.add_collection(CollectionRef(id=line_id, title=line["title"]))

    def apply_page_node(self, node: dict[str, Any]) -> None:
        """应用分页查询返回的一个商品节点（嵌套连接）"""
        product = self.apply_product_fields(node)

        for variant in _connection_nodes(node.get("variants")):
            product.add_variant(ProductVariant(
                id=variant.get("id", ""),
                title=variant.get("title") or "",
                price=variant.get("price"),
            ))

        for collection in _connection_nodes(node.get("collections")):
            if collection.get("id") and collection.get("title"):
                product.add_collection(
                    CollectionRef(id=collection["id"], title=collection["title"])
                )

    def products(self) -> list[ProductAccumulator]:
        return list(self._products.values())


def parse_bulk_lines(lines: Iterable[dict[str, Any]]) -> list[ProductAccumulator]:
    """解析全部Bulk结果行"""
    store = AccumulatorStore()
    count = 0
    for line in lines:
        store.apply_line(line)
        count += 1
    logger.debug(f"Bulk结果解析完成: {count} 行, {len(store)} 个商品")
    return store.products()
