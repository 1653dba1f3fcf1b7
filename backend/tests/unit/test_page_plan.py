"""
分页规划单元测试

每个模块完成后必须运行：pytest tests/unit/test_page_plan.py -v
"""

import pytest

from catalogforge.doc_gen import expected_page_count, plan_pages
from catalogforge.doc_gen.page_plan import grid_cell_origin
from catalogforge.models import HeaderItem, LayoutType, ProductItem


def _items(make_record, groups: list[int], headers: bool = True) -> list:
    """按分组大小构造分组序列"""
    items = []
    counter = 0
    for index, size in enumerate(groups):
        if headers:
            items.append(HeaderItem(title=f"Group {index + 1}"))
        for _ in range(size):
            counter += 1
            items.append(ProductItem(record=make_record(f"p{counter}", f"Item {counter}")))
    return items


class TestPlanPages:
    """页面规划测试"""

    def test_empty_is_single_page(self):
        """测试空序列一页"""
        pages = plan_pages([], LayoutType.GRID, 3)
        assert [p.kind for p in pages] == ["empty"]
        assert expected_page_count([], LayoutType.ONE_PER_PAGE) == 1

    def test_one_per_page(self, make_record):
        """测试每个条目一页，标题页只有标题"""
        items = _items(make_record, [2, 1])
        pages = plan_pages(items, LayoutType.ONE_PER_PAGE)

        assert [p.kind for p in pages] == ["header", "product", "product", "header", "product"]
        assert pages[0].title == "Group 1"
        assert pages[2].records[0].product_id == "p2"

    def test_grid_header_starts_new_page(self, make_record):
        """测试分组标题总是独占新页"""
        items = _items(make_record, [10, 2])
        pages = plan_pages(items, LayoutType.GRID, 3)

        assert [p.kind for p in pages] == ["header", "grid", "grid", "header", "grid"]
        assert [len(p.records) for p in pages if p.kind == "grid"] == [9, 1, 2]

    @pytest.mark.parametrize("groups,columns,headers", [
        ([7, 2, 12], 3, True),
        ([8, 8], 4, True),
        ([6], 2, True),
        ([13], 2, False),
        ([0, 5], 3, True),
    ])
    def test_grid_count_matches_formula(self, make_record, groups, columns, headers):
        """测试网格页数 = 各分组 ceil(n/(3·列数)) 之和 + 标题数"""
        items = _items(make_record, groups, headers)
        pages = plan_pages(items, LayoutType.GRID, columns)

        per_page = 3 * columns
        formula = sum(-(-n // per_page) for n in groups) + (len(groups) if headers else 0)
        assert len(pages) == formula
        assert expected_page_count(items, LayoutType.GRID, columns) == formula


class TestGridCell:
    """网格坐标测试"""

    def test_fill_order(self):
        """测试从左到右、从上到下"""
        assert grid_cell_origin(0, 3, 600, 900) == (0, 600, 200, 300)
        assert grid_cell_origin(2, 3, 600, 900) == (400, 600, 200, 300)
        assert grid_cell_origin(3, 3, 600, 900) == (0, 300, 200, 300)
        assert grid_cell_origin(8, 3, 600, 900) == (400, 0, 200, 300)
