"""
导出设置模型 - 商家在后台选择的导出范围与排版参数

JSON 使用 camelCase（后台界面的传输格式），Python 侧使用 snake_case。
任务开始后不可修改（frozen）。
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class ScopeType(str, Enum):
    """导出范围"""
    ALL_PRODUCTS = "ALL_PRODUCTS"
    COLLECTIONS = "COLLECTIONS"
    FILTERS = "FILTERS"
    PRODUCTS = "PRODUCTS"


class PricingMode(str, Enum):
    """价格展示方式"""
    DEFAULT_VARIANT_PRICE = "DEFAULT_VARIANT_PRICE"
    MIN_MAX_RANGE = "MIN_MAX_RANGE"
    VARIANT_TABLE = "VARIANT_TABLE"


class LayoutType(str, Enum):
    """PDF版式"""
    GRID = "GRID"
    ONE_PER_PAGE = "ONE_PER_PAGE"


class Grouping(str, Enum):
    """分组方式"""
    NONE = "NONE"
    VENDOR = "VENDOR"
    PRODUCT_TYPE = "PRODUCT_TYPE"
    COLLECTION = "COLLECTION"


class SortOrder(str, Enum):
    """排序方式"""
    TITLE_ASC = "TITLE_ASC"
    CREATED_DESC = "CREATED_DESC"
    UPDATED_DESC = "UPDATED_DESC"


class PageSize(str, Enum):
    """纸张尺寸"""
    A4 = "A4"
    LETTER = "LETTER"


class WatermarkOpacity(str, Enum):
    """水印浓度档位"""
    LIGHT = "LIGHT"
    MEDIUM = "MEDIUM"
    HEAVY = "HEAVY"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class OverlayRect(_CamelModel):
    """价格角标区域（相对图片宽高的比例，[0,1]）"""
    x: float = 0.06
    y: float = 0.74
    width: float = 0.88
    height: float = 0.2


class PriceOverlaySettings(_CamelModel):
    """价格角标设置"""
    enabled: bool = False
    rect: OverlayRect = Field(default_factory=OverlayRect)
    background_color: str = "#000000"
    background_opacity: float = 0.55
    text_color: str = "#ffffff"
    currency_prefix: str | None = None


class WatermarkSettings(_CamelModel):
    """水印设置"""
    enabled: bool = False
    text: str = ""
    opacity: WatermarkOpacity = WatermarkOpacity.LIGHT


class ProductFilters(_CamelModel):
    """FILTERS 范围下的筛选条件（同字段内 OR，字段间 AND）"""
    vendor: list[str] = Field(default_factory=list)
    product_type: list[str] = Field(default_factory=list)
    tag: list[str] = Field(default_factory=list)


# 后台旧版表单的平铺水印字段 → WatermarkSettings 字段
FLAT_WATERMARK_KEYS = {
    "watermarkEnabled": "enabled",
    "watermark_enabled": "enabled",
    "watermarkText": "text",
    "watermark_text": "text",
    "watermarkOpacity": "opacity",
    "watermark_opacity": "opacity",
}


class ExportSettings(_CamelModel):
    """导出设置

    水印既可写成嵌套的 ``watermark`` 对象，也可写成平铺的
    ``watermarkEnabled`` / ``watermarkText`` / ``watermarkOpacity``。
    两者同时出现时平铺字段优先。
    """

    # === 范围 ===
    scope_type: ScopeType = ScopeType.ALL_PRODUCTS
    include_drafts: bool = False
    collection_ids: list[str] = Field(default_factory=list)
    product_ids: list[str] = Field(default_factory=list)
    filters: ProductFilters = Field(default_factory=ProductFilters)

    # === 价格 ===
    pricing_mode: PricingMode = PricingMode.DEFAULT_VARIANT_PRICE
    currency_prefix: str = "$"

    # === 排版 ===
    layout_type: LayoutType = LayoutType.GRID
    grid_columns: int = Field(3, ge=2, le=4)
    grouping: Grouping = Grouping.NONE
    sort_order: SortOrder = SortOrder.TITLE_ASC
    page_size: PageSize = PageSize.A4
    watermark: WatermarkSettings = Field(default_factory=WatermarkSettings)

    # === 图片包 ===
    price_overlay: PriceOverlaySettings = Field(default_factory=PriceOverlaySettings)

    @model_validator(mode="before")
    @classmethod
    def _fold_flat_watermark(cls, data: Any) -> Any:
        """把平铺水印字段并入 watermark"""
        if not isinstance(data, dict):
            return data
        flat = {k: v for k, v in data.items() if k in FLAT_WATERMARK_KEYS}
        if not flat:
            return data

        data = {k: v for k, v in data.items() if k not in FLAT_WATERMARK_KEYS}
        nested = data.get("watermark") or {}
        if isinstance(nested, WatermarkSettings):
            nested = nested.model_dump()
        else:
            nested = dict(nested)
        for key, value in flat.items():
            nested[FLAT_WATERMARK_KEYS[key]] = value
        data["watermark"] = nested
        return data

    @property
    def overlay_currency_prefix(self) -> str:
        """角标使用的货币前缀（未单独设置时沿用全局前缀）"""
        if self.price_overlay.currency_prefix is not None:
            return self.price_overlay.currency_prefix
        return self.currency_prefix

    @property
    def include_collections(self) -> bool:
        """是否需要查询商品所属集合"""
        return self.grouping == Grouping.COLLECTION or self.scope_type == ScopeType.COLLECTIONS
