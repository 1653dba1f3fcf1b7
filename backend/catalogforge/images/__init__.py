"""
图片模块 - 封面下载与价格角标合成
"""

from .acquirer import AcquisitionResult, ImageAcquirer, safe_handle
from .overlay import apply_price_overlay, fit_font_size, resolve_overlay_rect

__all__ = [
    "AcquisitionResult",
    "ImageAcquirer",
    "apply_price_overlay",
    "fit_font_size",
    "resolve_overlay_rect",
    "safe_handle",
]
