"""
分页规划 - 分组序列 → 页面列表（纯函数，不涉及绘制）

规则：
- ONE_PER_PAGE: 每个条目一页（标题页只有分组标题）
- GRID: 每页 3 行 × 列数；分组标题总是独占新的一页；单元格从左到右、从上到下填充
- 空序列: 一页 "No products"

页数：ONE_PER_PAGE = 条目数；GRID = 各分组 ceil(n / (3·列数)) 之和 + 标题数
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal

from ..models import GroupedItem, HeaderItem, LayoutType, ProductRecord

GRID_ROWS = 3

PageKind = Literal["header", "product", "grid", "empty"]


@dataclass(frozen=True)
class PlannedPage:
    """一页的内容"""
    kind: PageKind
    title: str | None = None
    records: tuple[ProductRecord, ...] = ()


def plan_pages(
    items: list[GroupedItem],
    layout: LayoutType,
    columns: int = 3,
) -> list[PlannedPage]:
    """规划全部页面"""
    if not items:
        return [PlannedPage(kind="empty")]

    if layout == LayoutType.ONE_PER_PAGE:
        return [
            PlannedPage(kind="header", title=item.title)
            if isinstance(item, HeaderItem)
            else PlannedPage(kind="product", records=(item.record,))
            for item in items
        ]

    per_page = GRID_ROWS * columns
    pages: list[PlannedPage] = []
    cells: list[ProductRecord] = []

    def flush() -> None:
        if cells:
            pages.append(PlannedPage(kind="grid", records=tuple(cells)))
            cells.clear()

    for item in items:
        if isinstance(item, HeaderItem):
            flush()
            pages.append(PlannedPage(kind="header", title=item.title))
            continue
        cells.append(item.record)
        if len(cells) == per_page:
            flush()
    flush()

    return pages


def expected_page_count(
    items: list[GroupedItem],
    layout: LayoutType,
    columns: int = 3,
) -> int:
    """按公式计算页数（与 plan_pages 一致）"""
    if not items:
        return 1
    if layout == LayoutType.ONE_PER_PAGE:
        return len(items)

    per_page = GRID_ROWS * columns
    total = 0
    run = 0
    for item in items:
        if isinstance(item, HeaderItem):
            total += math.ceil(run / per_page) + 1
            run = 0
        else:
            run += 1
    return total + math.ceil(run / per_page)


def grid_cell_origin(
    index: int,
    columns: int,
    page_width: float,
    page_height: float,
) -> tuple[float, float, float, float]:
    """单元格左下角坐标与尺寸 (x, y, width, height)"""
    cell_width = page_width / columns
    cell_height = page_height / GRID_ROWS
    row, col = divmod(index, columns)
    return col * cell_width, page_height - (row + 1) * cell_height, cell_width, cell_height
