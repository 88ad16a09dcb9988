"""
rediscart - Redis-backed shopping carts.

Modules:
- config: CartConfig (Redis client, pricing field names, TTL)
- db: Upstash Redis client
- cart: Cart aggregate, line items, legacy cart conversion
- resolver: item type -> domain entity lookup

Note: Imports are lazy so that importing the package does not pull in the
Redis client until a cart is actually used.
"""

__all__ = [
    "Cart",
    "CartConfig",
    "CartFactory",
    "ModelRegistry",
    "get_redis",
]


def __getattr__(name):
    """Lazy attribute access."""
    if name in ("Cart", "CartFactory"):
        from rediscart import cart
        return getattr(cart, name)
    elif name == "CartConfig":
        from rediscart.config import CartConfig
        return CartConfig
    elif name == "ModelRegistry":
        from rediscart.resolver import ModelRegistry
        return ModelRegistry
    elif name == "get_redis":
        from rediscart.db import get_redis
        return get_redis
    raise AttributeError(f"module 'rediscart' has no attribute '{name}'")
