"""
模拟目录分页：按分组生成合成商品，打印页面规划（不绘制PDF），用于核对页数公式。

示例：
  python tools/simulate_catalog_pagination.py --groups 7,2,12 --layout GRID --columns 3
  python tools/simulate_catalog_pagination.py --groups 5 --layout ONE_PER_PAGE
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path


def _add_backend_to_path() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    backend_root = repo_root / "backend"
    if str(backend_root) not in sys.path:
        sys.path.insert(0, str(backend_root))


def _parse_groups(raw: str) -> list[int]:
    sizes = [int(x) for x in raw.split(",") if x.strip()]
    if any(n < 0 for n in sizes):
        raise ValueError(f"分组数量不能为负: {raw}")
    return sizes


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Print the catalog page plan for synthetic product groups."
    )
    parser.add_argument(
        "--groups",
        default="9",
        help="每个分组的商品数，逗号分隔（默认：9）",
    )
    parser.add_argument(
        "--layout",
        default="GRID",
        choices=["GRID", "ONE_PER_PAGE"],
    )
    parser.add_argument("--columns", type=int, default=3, choices=[2, 3, 4])
    parser.add_argument(
        "--no-headers",
        action="store_true",
        help="不插入分组标题（等同 grouping=NONE）",
    )
    args = parser.parse_args()

    _add_backend_to_path()
    from catalogforge.doc_gen import expected_page_count, plan_pages  # type: ignore
    from catalogforge.models import (  # type: ignore
        HeaderItem,
        LayoutType,
        ProductItem,
        ProductRecord,
    )

    items = []
    for g, size in enumerate(_parse_groups(args.groups), start=1):
        if not args.no_headers:
            items.append(HeaderItem(title=f"Group {g}"))
        for i in range(1, size + 1):
            record = ProductRecord(product_id=f"gid://shopify/Product/{g}{i:04d}", title=f"P{g}-{i}")
            items.append(ProductItem(record=record))

    layout = LayoutType(args.layout)
    pages = plan_pages(items, layout, args.columns)

    for n, page in enumerate(pages, start=1):
        if page.kind == "header":
            print(f"{n:>4}  header  {page.title}")
        elif page.kind == "empty":
            print(f"{n:>4}  empty   No products")
        else:
            titles = ", ".join(r.title or "" for r in page.records)
            print(f"{n:>4}  {page.kind:<7} [{len(page.records)}] {titles}")

    expected = expected_page_count(items, layout, args.columns)
    print(f"pages={len(pages)} expected={expected}")
    return 0 if len(pages) == expected else 1


if __name__ == "__main__":
    raise SystemExit(main())
