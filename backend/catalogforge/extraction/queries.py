"""
商品查询构建 - 筛选条件与Bulk查询文本

筛选条件：
- 状态：status:active，或包含草稿时 (status:active OR status:draft)
- 按范围追加 AND 子句：集合ID / 商品ID / 品牌·类型·标签（字段内 OR）
"""

from __future__ import annotations

import json

from ..models import ExportSettings, ScopeType

PRODUCT_NODE_FIELDS = """
          id
          title
          handle
          vendor
          productType
          status
          createdAt
          updatedAt
          featuredImage { url }
          images(first: 1) { nodes { url } }"""


def escape_query_value(value: str) -> str:
    """转义筛选值中的反斜杠与双引号"""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def extract_legacy_id(value: str) -> str:
    """gid://shopify/<Type>/123 → 123（非GID原样返回）"""
    if value.startswith("gid://"):
        tail = value.rsplit("/", 1)[-1]
        if tail.isdigit():
            return tail
    return value


def _or_clause(field: str, values: list[str]) -> str | None:
    if not values:
        return None
    parts = [f'{field}:"{escape_query_value(v)}"' for v in values]
    return f"({' OR '.join(parts)})"


def build_product_search(settings: ExportSettings) -> str:
    """构建商品筛选条件"""
    clauses: list[str] = []

    if settings.include_drafts:
        clauses.append("(status:active OR status:draft)")
    else:
        clauses.append("status:active")

    if settings.scope_type == ScopeType.COLLECTIONS and settings.collection_ids:
        ids = [
            f"collection_id:{escape_query_value(extract_legacy_id(cid))}"
            for cid in settings.collection_ids
        ]
        clauses.append(f"({' OR '.join(ids)})")

    elif settings.scope_type == ScopeType.PRODUCTS and settings.product_ids:
        ids = [
            f"id:{escape_query_value(extract_legacy_id(pid))}"
            for pid in settings.product_ids
        ]
        clauses.append(f"({' OR '.join(ids)})")

    elif settings.scope_type == ScopeType.FILTERS:
        filters = settings.filters
        for clause in (
            _or_clause("vendor", filters.vendor),
            _or_clause("product_type", filters.product_type),
            _or_clause("tag", filters.tag),
        ):
            if clause:
                clauses.append(clause)

    return " AND ".join(clauses)


def build_bulk_query(settings: ExportSettings) -> str:
    """
    构建Bulk查询文本

    Bulk结果中连接（variants/collections）展开为带 __parentId 的子行，
    images(first: 1) 与 featuredImage 内联在商品行中。
    """
    search = json.dumps(build_product_search(settings))
    collections = (
        "\n          collections(first: 10) { edges { node { id title } } }"
        if settings.include_collections
        else ""
    )
    return f"""{{
  products(query: {search}) {{
    edges {{
      node {{{PRODUCT_NODE_FIELDS}{collections}
          variants {{
            edges {{
              node {{ id title price }}
            }}
          }}
      }}
    }}
  }}
}}"""
