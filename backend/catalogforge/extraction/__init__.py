"""
商品抽取模块 - 筛选条件、Bulk结果解析与抽取器
"""

from .bulk_parser import AccumulatorStore, parse_bulk_lines
from .product_extractor import ProductExtractor
from .queries import build_bulk_query, build_product_search

__all__ = [
    "AccumulatorStore",
    "ProductExtractor",
    "build_bulk_query",
    "build_product_search",
    "parse_bulk_lines",
]
