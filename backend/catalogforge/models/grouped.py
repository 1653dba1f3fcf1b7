"""
分组序列模型 - PDF排版消费的有序条目

序列由分组标题（HeaderItem）和商品条目（ProductItem）组成，
标题之后直到下一个标题之前的商品都属于该分组。
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict

from .product import ProductRecord


class HeaderItem(BaseModel):
    """分组标题"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["header"] = "header"
    title: str


class ProductItem(BaseModel):
    """商品条目"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["product"] = "product"
    record: ProductRecord


GroupedItem = Union[HeaderItem, ProductItem]
