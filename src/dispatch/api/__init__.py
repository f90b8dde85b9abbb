"""Dispatch domain API package."""

from dispatch.api.routes import courier_router, delivery_router, dispatch_router, order_router

__all__ = ["order_router", "courier_router", "delivery_router", "dispatch_router"]
