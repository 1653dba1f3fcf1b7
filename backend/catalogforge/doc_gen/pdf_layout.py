"""
PDF排版引擎 - 按页面规划绘制商品目录

职责：
1. 纸张尺寸：A4 595×842pt，Letter 612×792pt
2. 水印（启用且文本非空）：每页最先绘制，-35°斜向，浓度 LIGHT/MEDIUM/HEAVY
3. 分组标题页、单品页（ONE_PER_PAGE）、网格页（GRID）
4. 封面嵌入失败降级为 "No image" 占位框
5. 正文字体：配置的TTF → 系统 DejaVuSans → Helvetica
6. CJK 字符段改用内置 CID 字体 STSong-Light（无需嵌入字体文件）

依赖：
- reportlab: PDF绘制
- Pillow: 按文件名在系统字体目录查找TTF
- IByteStore: 读取本地封面

测试要点：
- test_render_page_count_one_per_page: 每个条目一页
- test_render_page_count_grid: 网格页数公式
- test_broken_cover_uses_placeholder: 坏图不影响生成
- test_watermark_text_present: 水印文字出现在每页
- test_cjk_title_extractable: CJK 标题不乱码
- test_oversized_cover_uses_placeholder: 超大封面降级为占位框
"""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageFont
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas

from ..interfaces import CompositionError, IByteStore
from ..models import (
    ExportSettings,
    GroupedItem,
    PageSize,
    ProductRecord,
    VariantTablePrice,
    WatermarkOpacity,
)
from ..processing.pricing import format_price, format_price_value
from .page_plan import PlannedPage, grid_cell_origin, plan_pages

logger = logging.getLogger(__name__)

PAGE_SIZES: dict[PageSize, tuple[float, float]] = {
    PageSize.A4: (595, 842),
    PageSize.LETTER: (612, 792),
}

WATERMARK_OPACITY: dict[WatermarkOpacity, float] = {
    WatermarkOpacity.LIGHT: 0.12,
    WatermarkOpacity.MEDIUM: 0.20,
    WatermarkOpacity.HEAVY: 0.35,
}

DEFAULT_FONT = "Helvetica"
FONT_NAME_PREFIX = "CatalogSans"
DEFAULT_FONT_FILES = ("DejaVuSans.ttf",)
CJK_FONT = "STSong-Light"

# 中日统一表意文字、假名、CJK标点与全角字符
_CJK_RUN = re.compile("[\u2e80-\u9fff\uf900-\ufaff\ufe30-\ufe4f\uff00-\uffef]+")

# 单品页
PAGE_MARGIN = 40
PAGE_IMAGE_RATIO = 0.55
PAGE_TABLE_ROWS = 8

# 网格单元
CELL_PADDING = 12
CELL_IMAGE_RATIO = 0.6
CELL_TABLE_ROWS = 2


@dataclass
class RenderedPdf:
    """渲染结果"""
    data: bytes
    page_count: int


def find_font_file(file_name: str) -> str | None:
    """按文件名在系统字体目录查找TTF（与 Pillow 的查找规则一致）"""
    try:
        return ImageFont.truetype(file_name, 12).path
    except OSError:
        return None


def _register_ttf(path: str | Path) -> str | None:
    name = f"{FONT_NAME_PREFIX}-{Path(path).stem}"
    try:
        pdfmetrics.registerFont(TTFont(name, str(path)))
    except (TTFError, OSError) as e:
        logger.warning(f"字体加载失败: {path}: {e}")
        return None
    return name


def load_font(font_path: str | Path | None = None) -> str:
    """
    注册正文字体

    顺序：配置的TTF → 系统字体目录中的 DejaVuSans → Helvetica。

    Returns:
        reportlab 中可用的字体名
    """
    candidates = [font_path] if font_path else []
    candidates.extend(path for path in map(find_font_file, DEFAULT_FONT_FILES) if path)

    for path in candidates:
        name = _register_ttf(path)
        if name:
            return name

    logger.info(f"未找到可用TTF字体，使用 {DEFAULT_FONT}")
    return DEFAULT_FONT


def load_cjk_font() -> str:
    """注册内置 CID 字体（由阅读器提供字形）"""
    pdfmetrics.registerFont(UnicodeCIDFont(CJK_FONT))
    return CJK_FONT


def split_cjk_runs(text: str) -> list[tuple[str, bool]]:
    """按是否为 CJK 切分文本：[(片段, 是否CJK), ...]"""
    runs: list[tuple[str, bool]] = []
    position = 0
    for match in _CJK_RUN.finditer(text):
        if match.start() > position:
            runs.append((text[position:match.start()], False))
        runs.append((match.group(), True))
        position = match.end()
    if position < len(text):
        runs.append((text[position:], False))
    return runs


class CatalogPdfRenderer:
    """商品目录PDF渲染器"""

    def __init__(
        self,
        byte_store: IByteStore,
        settings: ExportSettings,
        font_path: str | Path | None = None,
    ):
        self.byte_store = byte_store
        self.settings = settings
        self.font = load_font(font_path)
        self.cjk_font = load_cjk_font()
        self.page_width, self.page_height = PAGE_SIZES[settings.page_size]

    def render(self, items: list[GroupedItem]) -> RenderedPdf:
        """按规划逐页绘制"""
        pages = plan_pages(items, self.settings.layout_type, self.settings.grid_columns)

        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=(self.page_width, self.page_height))
        pdf.setTitle("Product catalog")

        for page in pages:
            self._draw_watermark(pdf)
            self._draw_page(pdf, page)
            pdf.showPage()

        pdf.save()
        logger.debug(f"PDF渲染完成: {len(pages)} 页")
        return RenderedPdf(data=buffer.getvalue(), page_count=len(pages))

    def _draw_page(self, pdf: canvas.Canvas, page: PlannedPage) -> None:
        if page.kind == "header":
            self._draw_header_page(pdf, page.title or "")
        elif page.kind == "product":
            self._draw_product_page(pdf, page.records[0])
        elif page.kind == "grid":
            for index, record in enumerate(page.records):
                x, y, width, height = grid_cell_origin(
                    index, self.settings.grid_columns, self.page_width, self.page_height
                )
                self._draw_grid_cell(pdf, record, x, y, width, height)
        else:
            self._draw_text(pdf, "No products", 48, self.page_height / 2, 20, 0.4)

    # ------------------------------------------------------------------
    # 页面元素
    # ------------------------------------------------------------------

    def _draw_watermark(self, pdf: canvas.Canvas) -> None:
        watermark = self.settings.watermark
        if not watermark.enabled or not watermark.text:
            return

        pdf.saveState()
        pdf.setFillColorRGB(0.6, 0.6, 0.6, alpha=WATERMARK_OPACITY[watermark.opacity])
        pdf.translate(self.page_width * 0.1, self.page_height * 0.5)
        pdf.rotate(-35)
        self._draw_runs(pdf, watermark.text, 0, 0, 48)
        pdf.restoreState()

    def _draw_header_page(self, pdf: canvas.Canvas, title: str) -> None:
        self._draw_text(pdf, title, 48, self.page_height / 2, 28, 0.15)

    def _draw_product_page(self, pdf: canvas.Canvas, record: ProductRecord) -> None:
        margin = PAGE_MARGIN
        image_height = self.page_height * PAGE_IMAGE_RATIO
        text_y = self.page_height - image_height - 80

        self._draw_image_or_placeholder(
            pdf, record,
            margin, self.page_height - image_height - margin,
            self.page_width - margin * 2, image_height,
        )
        self._draw_text(pdf, record.title or "Untitled", margin, text_y, 18, 0.1)

        price = record.price
        if isinstance(price, VariantTablePrice):
            header_y = text_y - 28
            self._draw_text(pdf, "Variants", margin, header_y, 12, 0.2)
            self._draw_variant_rows(
                pdf, price,
                left=margin, right=self.page_width - margin,
                top=header_y - 18, size=10, spacing=14, limit=PAGE_TABLE_ROWS,
                more_label="more variants", more_size=9,
            )
            return

        price_text = format_price(price, self.settings.currency_prefix)
        if price_text:
            self._draw_text(pdf, price_text, margin, text_y - 28, 14, 0.2)

    def _draw_grid_cell(
        self,
        pdf: canvas.Canvas,
        record: ProductRecord,
        x: float,
        y: float,
        width: float,
        height: float,
    ) -> None:
        padding = CELL_PADDING
        image_height = height * CELL_IMAGE_RATIO

        self._draw_image_or_placeholder(
            pdf, record,
            x + padding, y + height - image_height - padding,
            width - padding * 2, image_height - padding,
        )
        self._draw_text(pdf, record.title or "Untitled", x + padding, y + padding + 18, 10, 0.1)

        price = record.price
        if isinstance(price, VariantTablePrice):
            self._draw_variant_rows(
                pdf, price,
                left=x + padding, right=x + width - padding,
                top=y + padding + 10, size=8, spacing=10, limit=CELL_TABLE_ROWS,
                more_label="more", more_size=7,
            )
            return

        price_text = format_price(price, self.settings.currency_prefix)
        if price_text:
            self._draw_text(pdf, price_text, x + padding, y + padding, 9, 0.2)

    def _draw_variant_rows(
        self,
        pdf: canvas.Canvas,
        price: VariantTablePrice,
        *,
        left: float,
        right: float,
        top: float,
        size: float,
        spacing: float,
        limit: int,
        more_label: str,
        more_size: float,
    ) -> None:
        """款式价格行（标题左对齐，价格右对齐），超出部分显示 +N"""
        rows = price.variants[:limit]
        row_y = top
        for variant in rows:
            self._draw_text(pdf, variant.title or "Variant", left, row_y, size, 0.2)
            price_text = format_price_value(variant.price, self.settings.currency_prefix)
            if price_text:
                text_width = self._text_width(price_text, size)
                self._draw_text(pdf, price_text, right - text_width, row_y, size, 0.2)
            row_y -= spacing

        hidden = len(price.variants) - len(rows)
        if hidden > 0:
            self._draw_text(pdf, f"+{hidden} {more_label}", left, row_y, more_size, 0.5)

    def _draw_image_or_placeholder(
        self,
        pdf: canvas.Canvas,
        record: ProductRecord,
        x: float,
        y: float,
        width: float,
        height: float,
    ) -> None:
        if record.local_cover_path:
            try:
                self._draw_cover(pdf, record.local_cover_path, x, y, width, height)
                return
            except CompositionError as e:
                logger.warning(f"封面嵌入失败，使用占位框: {record.product_id}: {e}")

        pdf.saveState()
        pdf.setStrokeColorRGB(0.7, 0.7, 0.7)
        pdf.setFillColorRGB(0.95, 0.95, 0.95)
        pdf.setLineWidth(1)
        pdf.rect(x, y, width, height, stroke=1, fill=1)
        pdf.restoreState()
        self._draw_text(pdf, "No image", x + 8, y + height / 2, 10, 0.6)

    def _draw_cover(
        self,
        pdf: canvas.Canvas,
        key: str,
        x: float,
        y: float,
        width: float,
        height: float,
    ) -> None:
        """等比缩放居中绘制封面"""
        data = self.byte_store.read(key)
        try:
            image = ImageReader(io.BytesIO(data))
            image_width, image_height = image.getSize()
            scale = min(width / image_width, height / image_height)
            draw_width, draw_height = image_width * scale, image_height * scale
            pdf.drawImage(
                image,
                x + (width - draw_width) / 2,
                y + (height - draw_height) / 2,
                width=draw_width,
                height=draw_height,
                mask="auto",
            )
        except (Image.DecompressionBombError, OSError, ValueError, ZeroDivisionError) as e:
            raise CompositionError(f"封面无法嵌入: {key}: {e}") from e

    def _draw_text(
        self,
        pdf: canvas.Canvas,
        text: str,
        x: float,
        y: float,
        size: float,
        grey: float,
    ) -> None:
        pdf.setFillColorRGB(grey, grey, grey)
        self._draw_runs(pdf, text, x, y, size)

    def _draw_runs(self, pdf: canvas.Canvas, text: str, x: float, y: float, size: float) -> None:
        """逐段切换字体绘制，CJK 段使用 CID 字体"""
        for run, is_cjk in split_cjk_runs(text):
            font = self.cjk_font if is_cjk else self.font
            pdf.setFont(font, size)
            pdf.drawString(x, y, run)
            x += pdfmetrics.stringWidth(run, font, size)

    def _text_width(self, text: str, size: float) -> float:
        return sum(
            pdfmetrics.stringWidth(run, self.cjk_font if is_cjk else self.font, size)
            for run, is_cjk in split_cjk_runs(text)
        )
