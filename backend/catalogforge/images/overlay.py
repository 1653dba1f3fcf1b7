"""
价格角标合成 - 在封面图上绘制半透明价格条

职责：
1. 比例矩形 → 像素矩形（钳制在图片范围内）
2. 半透明背景 + 居中价格文本
3. 字号估算：起始 max(12, 矩形高/2)，估算宽度超过矩形宽90%时按比例缩小，最小10
4. 保持格式：PNG仍为PNG，其余重新编码为JPEG（质量90）

测试要点：
- test_resolve_rect_clamps: 任意比例输入都落在图片内
- test_fit_font_size: 长文本缩小且不低于下限
- test_png_stays_png / test_jpeg_output: 输出格式
- test_invalid_bytes_raise: 解码失败抛出 CompositionError
- test_oversized_image_raises: 像素超过 Pillow 上限同样转为 CompositionError
"""

from __future__ import annotations

import io
import logging
import math
import re
from dataclasses import dataclass

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from ..interfaces import CompositionError
from ..models import PriceOverlaySettings

logger = logging.getLogger(__name__)

MIN_FONT_SIZE = 10
BASE_FONT_FLOOR = 12
CHAR_WIDTH_FACTOR = 0.6
TEXT_WIDTH_RATIO = 0.9
JPEG_QUALITY = 90
FONT_CANDIDATES = ("DejaVuSans-Bold.ttf", "DejaVuSans.ttf", "Arial.ttf")

_HEX_COLOR = re.compile(r"^[0-9a-fA-F]{3}([0-9a-fA-F]{3})?$")


@dataclass(frozen=True)
class PixelRect:
    """像素矩形"""
    x: int
    y: int
    width: int
    height: int

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


def clamp01(value: float) -> float:
    """钳制到 [0, 1]，NaN 视为 0"""
    if value is None or math.isnan(value):
        return 0.0
    return min(max(value, 0.0), 1.0)


def hex_to_rgb(value: str, default: tuple[int, int, int] = (0, 0, 0)) -> tuple[int, int, int]:
    """#rgb / #rrggbb → (r, g, b)，无法解析时返回默认值"""
    normalized = (value or "").strip().lstrip("#")
    if not _HEX_COLOR.match(normalized):
        return default
    if len(normalized) == 3:
        normalized = "".join(ch * 2 for ch in normalized)
    number = int(normalized, 16)
    return (number >> 16) & 255, (number >> 8) & 255, number & 255


def resolve_overlay_rect(
    overlay: PriceOverlaySettings,
    image_width: int,
    image_height: int,
) -> PixelRect:
    """比例矩形 → 图片内的像素矩形"""
    rect = overlay.rect
    width = round(image_width * clamp01(rect.width))
    height = round(image_height * clamp01(rect.height))
    x = round(min(max(0.0, image_width * clamp01(rect.x)), image_width - width))
    y = round(min(max(0.0, image_height * clamp01(rect.y)), image_height - height))
    return PixelRect(x=x, y=y, width=width, height=height)


def fit_font_size(text: str, base_size: int, rect_width: int) -> int:
    """估算宽度超出时按比例缩小字号"""
    length = len(text) or 1
    max_width = rect_width * TEXT_WIDTH_RATIO
    estimated = base_size * length * CHAR_WIDTH_FACTOR
    if estimated <= max_width:
        return base_size
    scaled = math.floor(base_size * (max_width / estimated))
    return max(MIN_FONT_SIZE, scaled)


def _load_font(size: int) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    for name in FONT_CANDIDATES:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def apply_price_overlay(
    data: bytes,
    price_text: str | None,
    overlay: PriceOverlaySettings,
    extension: str = "jpg",
) -> bytes:
    """
    合成价格角标

    Args:
        data: 原始图片字节
        price_text: 已格式化的价格文本（None 时原样返回）
        overlay: 角标设置（未启用时原样返回）
        extension: 目标扩展名，png 保持PNG，其余输出JPEG

    Raises:
        CompositionError: 解码或合成失败
    """
    if not price_text or not overlay.enabled:
        return data

    try:
        with Image.open(io.BytesIO(data)) as source:
            source.load()
            base = source.convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise CompositionError(f"图片解码失败: {e}") from e

    rect = resolve_overlay_rect(overlay, base.width, base.height)
    if rect.is_empty:
        return data

    try:
        layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)

        r, g, b = hex_to_rgb(overlay.background_color)
        alpha = round(255 * clamp01(overlay.background_opacity))
        draw.rectangle(
            (rect.x, rect.y, rect.x + rect.width - 1, rect.y + rect.height - 1),
            fill=(r, g, b, alpha),
        )

        base_size = round(max(BASE_FONT_FLOOR, rect.height * 0.5))
        font = _load_font(fit_font_size(price_text, base_size, rect.width))
        draw.text(
            (rect.x + rect.width / 2, rect.y + rect.height / 2),
            price_text,
            font=font,
            fill=hex_to_rgb(overlay.text_color, default=(255, 255, 255)) + (255,),
            anchor="mm",
        )

        composed = Image.alpha_composite(base, layer)
        output = io.BytesIO()
        if extension.lower().lstrip(".") == "png":
            composed.save(output, format="PNG")
        else:
            composed.convert("RGB").save(output, format="JPEG", quality=JPEG_QUALITY)
        return output.getvalue()
    except (OSError, ValueError) as e:
        raise CompositionError(f"价格角标合成失败: {e}") from e
