"""
Shopify 适配层 - GraphQL 客户端与商品源实现
"""

from .catalog_source import ShopifyCatalogSource, build_products_page_query
from .graphql_client import ShopifyGraphQLClient

__all__ = [
    "ShopifyCatalogSource",
    "ShopifyGraphQLClient",
    "build_products_page_query",
]
