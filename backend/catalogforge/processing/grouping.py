"""
排序与分组 - 商品记录 → PDF排版消费的分组序列

- 所有排序稳定
- TITLE_ASC 使用去重音、忽略大小写的排序键
- CREATED_DESC / UPDATED_DESC 按ISO-8601字符串倒序，缺失视为空串
- 分组按首次出现顺序，缺失数据归入 "Unassigned"
"""

from __future__ import annotations

import unicodedata

from ..extraction.queries import extract_legacy_id
from ..models import (
    ExportSettings,
    GroupedItem,
    Grouping,
    HeaderItem,
    ProductItem,
    ProductRecord,
    SortOrder,
)

UNASSIGNED = "Unassigned"


def title_sort_key(title: str | None) -> tuple[str, str]:
    """标题排序键（去重音 + casefold，原文作为次级键）"""
    text = title or ""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold(), text


def sort_records(records: list[ProductRecord], order: SortOrder) -> list[ProductRecord]:
    """稳定排序，返回新列表"""
    if order == SortOrder.TITLE_ASC:
        return sorted(records, key=lambda r: title_sort_key(r.title))
    if order == SortOrder.CREATED_DESC:
        return sorted(records, key=lambda r: r.created_at or "", reverse=True)
    if order == SortOrder.UPDATED_DESC:
        return sorted(records, key=lambda r: r.updated_at or "", reverse=True)
    return list(records)


def select_collection_title(
    record: ProductRecord,
    collection_ids: list[str] | None = None,
) -> str | None:
    """优先选中的集合，否则第一个集合"""
    if not record.collections:
        return None

    if collection_ids:
        wanted = {extract_legacy_id(cid) for cid in collection_ids}
        for collection in record.collections:
            if extract_legacy_id(collection.id) in wanted:
                return collection.title

    return record.collections[0].title


def _group_key(record: ProductRecord, settings: ExportSettings) -> str:
    if settings.grouping == Grouping.VENDOR:
        value = record.vendor
    elif settings.grouping == Grouping.PRODUCT_TYPE:
        value = record.product_type
    else:
        value = select_collection_title(record, settings.collection_ids)
    return value or UNASSIGNED


def build_grouped_items(
    records: list[ProductRecord],
    settings: ExportSettings,
) -> list[GroupedItem]:
    """排序后的记录 → 标题 + 商品的扁平序列"""
    if settings.grouping == Grouping.NONE:
        return [ProductItem(record=r) for r in records]

    buckets: dict[str, list[ProductRecord]] = {}
    for record in records:
        buckets.setdefault(_group_key(record, settings), []).append(record)

    items: list[GroupedItem] = []
    for title, group in buckets.items():
        items.append(HeaderItem(title=title))
        items.extend(ProductItem(record=r) for r in group)
    return items


def group_and_sort(
    records: list[ProductRecord],
    settings: ExportSettings,
) -> list[GroupedItem]:
    """排序 + 分组"""
    return build_grouped_items(sort_records(records, settings.sort_order), settings)
