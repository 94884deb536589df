"""Marketplace HTTP API package."""

from marketplace.api.errors import register_error_handlers
from marketplace.api.routes import checkout_router, order_router, seller_router

__all__ = ["checkout_router", "order_router", "register_error_handlers", "seller_router"]
