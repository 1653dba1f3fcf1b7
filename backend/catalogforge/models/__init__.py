"""
数据模型层 - 定义系统核心数据结构

所有模块通过这些模型交互，实现解耦：
- ExportSettings: 导出范围与排版设置
- ProductAccumulator / ProductRecord: 抽取中间态与不可变商品记录
- GroupedItem: PDF排版消费的分组序列
- Job / JobIssue / JobFile: 任务状态、问题与产物
"""

from .grouped import GroupedItem, HeaderItem, ProductItem
from .job import (
    FileType,
    IssueSeverity,
    IssueType,
    Job,
    JobCounts,
    JobFile,
    JobIssue,
    JobStatus,
)
from .product import (
    CollectionRef,
    Price,
    ProductAccumulator,
    ProductRecord,
    ProductVariant,
    RangePrice,
    ScalarPrice,
    VariantPriceRow,
    VariantTablePrice,
)
from .settings import (
    ExportSettings,
    Grouping,
    LayoutType,
    OverlayRect,
    PageSize,
    PriceOverlaySettings,
    PricingMode,
    ProductFilters,
    ScopeType,
    SortOrder,
    WatermarkOpacity,
    WatermarkSettings,
)

__all__ = [
    "ExportSettings",
    "Grouping",
    "LayoutType",
    "OverlayRect",
    "PageSize",
    "PriceOverlaySettings",
    "PricingMode",
    "ProductFilters",
    "ScopeType",
    "SortOrder",
    "WatermarkOpacity",
    "WatermarkSettings",
    "CollectionRef",
    "Price",
    "ProductAccumulator",
    "ProductRecord",
    "ProductVariant",
    "RangePrice",
    "ScalarPrice",
    "VariantPriceRow",
    "VariantTablePrice",
    "GroupedItem",
    "HeaderItem",
    "ProductItem",
    "FileType",
    "IssueSeverity",
    "IssueType",
    "Job",
    "JobCounts",
    "JobFile",
    "JobIssue",
    "JobStatus",
]
