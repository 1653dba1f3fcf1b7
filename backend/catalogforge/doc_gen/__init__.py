"""
文档生成模块 - 商品目录PDF

子模块：
- page_plan: 分页规划（纯函数）
- pdf_layout: 按规划绘制PDF（reportlab）
"""

from .page_plan import PlannedPage, expected_page_count, plan_pages
from .pdf_layout import CatalogPdfRenderer, RenderedPdf

__all__ = [
    "CatalogPdfRenderer",
    "PlannedPage",
    "RenderedPdf",
    "expected_page_count",
    "plan_pages",
]
