"""
价格解析 - 累加器 → 不可变商品记录

职责：
1. 按价格模式解析价格（默认款式价 / 最低-最高区间 / 款式价格表）
2. 解析封面URL（特色图 → 首张图片 → 无）
3. 价格展示格式化（带货币前缀）

区间价格用 Decimal 比较，输出去掉多余的零：
"10.00" → "10"，"25.50" → "25.5"

测试要点：
- test_default_variant_price: 首个款式价格原样输出
- test_min_max_range: 数值极值与格式
- test_variant_table_keeps_order: 款式顺序保持
- test_format_price: 三种价格的展示文本
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from ..models import (
    ExportSettings,
    Price,
    PricingMode,
    ProductAccumulator,
    ProductRecord,
    RangePrice,
    ScalarPrice,
    VariantPriceRow,
    VariantTablePrice,
)

logger = logging.getLogger(__name__)


def _parse_decimal(value: str) -> Decimal | None:
    try:
        number = Decimal(value.strip())
    except (InvalidOperation, AttributeError):
        return None
    return number if number.is_finite() else None


def format_decimal(number: Decimal) -> str:
    """Decimal → 最简字符串（整数不带小数部分）"""
    text = format(number.normalize(), "f")
    return "0" if text in ("-0", "") else text


def resolve_price(product: ProductAccumulator, mode: PricingMode) -> Price | None:
    """按价格模式解析价格"""
    variants = product.variants

    if mode == PricingMode.DEFAULT_VARIANT_PRICE:
        if not variants or variants[0].price is None:
            return None
        return ScalarPrice(value=variants[0].price)

    if mode == PricingMode.MIN_MAX_RANGE:
        numbers: list[Decimal] = []
        for variant in variants:
            if variant.price is None:
                continue
            number = _parse_decimal(variant.price)
            if number is None:
                logger.warning(f"无法解析的款式价格，已跳过: {product.id} {variant.price!r}")
                continue
            numbers.append(number)
        if not numbers:
            return None
        return RangePrice(min=format_decimal(min(numbers)), max=format_decimal(max(numbers)))

    if mode == PricingMode.VARIANT_TABLE:
        return VariantTablePrice(variants=tuple(
            VariantPriceRow(title=v.title, price=v.price) for v in variants
        ))

    return None


def resolve_cover_url(product: ProductAccumulator) -> str | None:
    """封面URL：特色图 → 首张图片 → None"""
    if product.featured_image_url:
        return product.featured_image_url
    return product.image_urls[0] if product.image_urls else None


def build_product_record(
    product: ProductAccumulator,
    settings: ExportSettings,
) -> ProductRecord:
    """由累加器构建不可变商品记录"""
    return ProductRecord(
        product_id=product.id,
        title=product.title,
        handle=product.handle,
        vendor=product.vendor,
        product_type=product.product_type,
        status=product.status,
        created_at=product.created_at,
        updated_at=product.updated_at,
        collections=tuple(product.collections),
        cover_url=resolve_cover_url(product),
        price=resolve_price(product, settings.pricing_mode),
    )


def format_price_value(value: str | None, currency_prefix: str | None = None) -> str | None:
    """单个价格加货币前缀"""
    if not value:
        return None
    prefix = "$" if currency_prefix is None else currency_prefix
    return f"{prefix}{value}"


def format_price(price: Price | None, currency_prefix: str | None = None) -> str | None:
    """
    价格展示文本

    - scalar: "$19.99"
    - range: "$10 - $25"
    - table: 首个款式价格（首款无价格则为None）
    """
    if price is None:
        return None

    if isinstance(price, ScalarPrice):
        return format_price_value(price.value, currency_prefix)

    if isinstance(price, RangePrice):
        low = format_price_value(price.min, currency_prefix)
        high = format_price_value(price.max, currency_prefix)
        return f"{low} - {high}"

    if isinstance(price, VariantTablePrice):
        if not price.variants:
            return None
        return format_price_value(price.variants[0].price, currency_prefix)

    return None
