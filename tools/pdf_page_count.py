"""
PDF页数统计（适用于导出后的 catalog.pdf 计页）。

示例：
  python tools/pdf_page_count.py --pdf storage/jobs/<job_id>/catalog.pdf
"""

from __future__ import annotations

import argparse
from pathlib import Path

import pdfplumber


def count_pdf_pages(path: Path) -> int:
    with pdfplumber.open(str(path)) as pdf:
        return len(pdf.pages)


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--pdf", required=True)
    args = ap.parse_args()
    n = count_pdf_pages(Path(args.pdf))
    print(n)


if __name__ == "__main__":
    main()
