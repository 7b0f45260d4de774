"""Launch Checklist Engine - API Routers"""
from .audits import router as audits_router
from .bulk import router as bulk_router
from .products import router as products_router
from .shop import router as shop_router
from .webhooks import router as webhooks_router

__all__ = [
    "audits_router",
    "bulk_router",
    "products_router",
    "shop_router",
    "webhooks_router",
]
