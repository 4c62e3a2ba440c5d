"""
API Routes Module
"""
from .catalog import router as catalog_router
from .health import router as health_router
from .sales import router as sales_router

__all__ = [
    "catalog_router",
    "health_router",
    "sales_router",
]
