"""
价格角标合成单元测试

每个模块完成后必须运行：pytest tests/unit/test_overlay.py -v
"""

import io
import math

import pytest
from PIL import Image

from catalogforge.images.overlay import (
    MIN_FONT_SIZE,
    apply_price_overlay,
    clamp01,
    fit_font_size,
    hex_to_rgb,
    resolve_overlay_rect,
)
from catalogforge.interfaces import CompositionError
from catalogforge.models import OverlayRect, PriceOverlaySettings


def _overlay(**rect) -> PriceOverlaySettings:
    return PriceOverlaySettings(enabled=True, rect=OverlayRect(**rect))


class TestResolveRect:
    """矩形换算测试"""

    def test_default_rect(self):
        """测试默认比例"""
        rect = resolve_overlay_rect(PriceOverlaySettings(), 1000, 500)
        assert (rect.x, rect.y, rect.width, rect.height) == (60, 370, 880, 100)

    @pytest.mark.parametrize("x,y,w,h", [
        (-1.0, -5.0, 2.0, 3.0),
        (0.9, 0.95, 0.5, 0.5),
        (1.5, 1.5, 0.1, 0.1),
        (math.nan, 0.2, math.nan, 0.3),
        (0.0, 0.0, 1.0, 1.0),
    ])
    def test_resolve_rect_clamps(self, x, y, w, h):
        """测试任意比例输入都落在图片内"""
        rect = resolve_overlay_rect(_overlay(x=x, y=y, width=w, height=h), 640, 480)
        assert 0 <= rect.x and 0 <= rect.y
        assert rect.x + rect.width <= 640
        assert rect.y + rect.height <= 480

    def test_clamp01(self):
        """测试钳制"""
        assert clamp01(-0.5) == 0.0
        assert clamp01(1.7) == 1.0
        assert clamp01(math.nan) == 0.0


class TestFontSize:
    """字号估算测试"""

    def test_short_text_keeps_base(self):
        """测试短文本保持起始字号"""
        assert fit_font_size("$5", 40, 800) == 40

    def test_long_text_shrinks(self):
        """测试长文本缩小"""
        size = fit_font_size("$1,234,567.89 - $9,999,999.99", 50, 400)
        assert MIN_FONT_SIZE <= size < 50
        assert len("$1,234,567.89 - $9,999,999.99") * size * 0.6 <= 400 * 0.9 + 1

    def test_floor(self):
        """测试字号下限"""
        assert fit_font_size("x" * 200, 40, 50) == MIN_FONT_SIZE


class TestHexToRgb:
    """颜色解析测试"""

    def test_parse(self):
        assert hex_to_rgb("#ff8000") == (255, 128, 0)
        assert hex_to_rgb("0f0") == (0, 255, 0)
        assert hex_to_rgb("not-a-color", default=(1, 2, 3)) == (1, 2, 3)


class TestApplyOverlay:
    """合成测试"""

    def test_disabled_returns_source(self, png_bytes):
        """测试未启用时原样返回"""
        overlay = PriceOverlaySettings(enabled=False)
        assert apply_price_overlay(png_bytes, "$5", overlay, "png") is png_bytes

    def test_no_price_returns_source(self, png_bytes):
        """测试无价格文本时原样返回"""
        assert apply_price_overlay(png_bytes, None, _overlay(), "png") is png_bytes

    def test_png_stays_png(self, png_bytes):
        """测试PNG输出仍为PNG，尺寸不变"""
        output = apply_price_overlay(png_bytes, "$19.99", _overlay(), "png")
        with Image.open(io.BytesIO(output)) as image:
            assert image.format == "PNG"
            assert image.size == (200, 160)

    def test_jpeg_output(self, jpeg_bytes):
        """测试非PNG重新编码为JPEG"""
        output = apply_price_overlay(jpeg_bytes, "$19.99", _overlay(), "jpg")
        with Image.open(io.BytesIO(output)) as image:
            assert image.format == "JPEG"

    def test_rect_is_painted(self, png_bytes):
        """测试矩形区域被背景色覆盖"""
        overlay = PriceOverlaySettings(
            enabled=True,
            rect=OverlayRect(x=0.0, y=0.0, width=1.0, height=0.25),
            background_color="#ff0000",
            background_opacity=1.0,
        )
        output = apply_price_overlay(png_bytes, "$1", overlay, "png")
        with Image.open(io.BytesIO(output)) as image:
            # 左上角在矩形内且远离居中文本
            assert image.convert("RGB").getpixel((1, 1)) == (255, 0, 0)
            # 矩形外保持原色
            assert image.convert("RGB").getpixel((1, 150)) == (30, 120, 200)

    def test_degenerate_rect_returns_source(self, png_bytes):
        """测试零面积矩形原样返回"""
        output = apply_price_overlay(png_bytes, "$1", _overlay(width=0.0), "png")
        assert output is png_bytes

    def test_invalid_bytes_raise(self):
        """测试解码失败抛出 CompositionError"""
        with pytest.raises(CompositionError):
            apply_price_overlay(b"not an image", "$1", _overlay(), "jpg")

    def test_oversized_image_raises(self, png_bytes, monkeypatch):
        """测试像素数超过 Pillow 上限时转为 CompositionError"""
        # 200x160 = 32000 像素，超过上限两倍即拒绝解码
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

        with pytest.raises(CompositionError):
            apply_price_overlay(png_bytes, "$1", _overlay(), "png")
