"""
商品模型 - 抽取阶段的累加器与下游使用的不可变记录

- ProductAccumulator: 抽取期间按商品ID累加（可变）
- ProductRecord: 每个累加器派生一次（不可变），下载后生成带本地路径的新副本
- Price: 带判别字段 kind 的价格联合类型
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProductVariant(BaseModel):
    """商品款式"""
    id: str
    title: str = ""
    price: str | None = None


class CollectionRef(BaseModel):
    """商品所属集合"""
    id: str
    title: str


class ProductAccumulator(BaseModel):
    """抽取期间的商品累加器（按ID upsert）"""
    id: str
    title: str | None = None
    handle: str | None = None
    vendor: str | None = None
    product_type: str | None = None
    status: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    featured_image_url: str | None = None
    image_urls: list[str] = Field(default_factory=list)
    variants: list[ProductVariant] = Field(default_factory=list)
    collections: list[CollectionRef] = Field(default_factory=list)

    def add_image_url(self, url: str | None) -> None:
        """追加图片URL（去重）"""
        if url and url not in self.image_urls:
            self.image_urls.append(url)

    def add_variant(self, variant: ProductVariant) -> None:
        """追加款式（同ID只保留第一次出现）"""
        if not any(v.id == variant.id for v in self.variants):
            self.variants.append(variant)

    def add_collection(self, collection: CollectionRef) -> None:
        """追加集合（去重）"""
        if not any(c.id == collection.id for c in self.collections):
            self.collections.append(collection)


class _RecordModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ScalarPrice(_RecordModel):
    """单一价格"""
    kind: Literal["scalar"] = "scalar"
    value: str


class RangePrice(_RecordModel):
    """最低-最高价区间"""
    kind: Literal["range"] = "range"
    min: str
    max: str


class VariantPriceRow(_RecordModel):
    """款式价格行"""
    title: str
    price: str | None = None


class VariantTablePrice(_RecordModel):
    """款式价格表（保持款式原始顺序）"""
    kind: Literal["table"] = "table"
    variants: tuple[VariantPriceRow, ...] = ()


Price = Annotated[
    Union[ScalarPrice, RangePrice, VariantTablePrice],
    Field(discriminator="kind"),
]


class ProductRecord(_RecordModel):
    """不可变商品记录（定价/封面已解析）"""
    product_id: str
    title: str | None = None
    handle: str | None = None
    vendor: str | None = None
    product_type: str | None = None
    status: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    collections: tuple[CollectionRef, ...] = ()
    cover_url: str | None = None
    price: Price | None = None

    # 下载阶段回填
    local_cover_path: str | None = None
    cover_file_name: str | None = None

    @property
    def has_local_cover(self) -> bool:
        return bool(self.local_cover_path and self.cover_file_name)

    def with_cover(self, local_cover_path: str, cover_file_name: str) -> ProductRecord:
        """返回带本地封面路径的新记录"""
        return self.model_copy(
            update={"local_cover_path": local_cover_path, "cover_file_name": cover_file_name}
        )
