"""Launch Checklist Engine - Catalog read/write boundary"""
from .base import CatalogClient, FieldError, ListingUpdate, MutationResult
from .shopify import ShopifyCatalogClient, snapshot_from_product, to_product_gid

__all__ = [
    "CatalogClient",
    "FieldError",
    "ListingUpdate",
    "MutationResult",
    "ShopifyCatalogClient",
    "snapshot_from_product",
    "to_product_gid",
]
