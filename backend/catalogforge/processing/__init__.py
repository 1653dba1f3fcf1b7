"""
数据处理模块 - 价格解析与排序分组（纯函数）
"""

from .grouping import (
    build_grouped_items,
    group_and_sort,
    select_collection_title,
    sort_records,
)
from .pricing import (
    build_product_record,
    format_price,
    format_price_value,
    resolve_cover_url,
    resolve_price,
)

__all__ = [
    "build_grouped_items",
    "build_product_record",
    "format_price",
    "format_price_value",
    "group_and_sort",
    "resolve_cover_url",
    "resolve_price",
    "select_collection_title",
    "sort_records",
]
