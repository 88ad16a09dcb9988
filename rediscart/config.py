"""
Cart configuration.

A CartConfig is built once (usually with ``CartConfig.from_env()``) and passed
to every Cart. It bundles the Redis client, the record field names used for
pricing, the cart TTL and the domain model registry.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional, Union

from rediscart.keys import RedisKeys
from rediscart.resolver import ModelRegistry


class TTL:
    """Time-to-live constants (in seconds)."""

    CART = 86400  # 24 hours


DEFAULT_UNIT_COST_FIELD = "unit_cost"
DEFAULT_QUANTITY_FIELD = "quantity"


@dataclass
class CartConfig:
    """Settings shared by all carts of one application."""
    redis: Any
    unit_cost_field: str = DEFAULT_UNIT_COST_FIELD
    quantity_field: str = DEFAULT_QUANTITY_FIELD
    cart_expires_in: Union[int, timedelta] = TTL.CART
    namespace: str = RedisKeys.DEFAULT_NAMESPACE
    models: ModelRegistry = field(default_factory=ModelRegistry)

    def __post_init__(self):
        if isinstance(self.cart_expires_in, timedelta):
            self.cart_expires_in = int(self.cart_expires_in.total_seconds())
        self.cart_expires_in = int(self.cart_expires_in)
        if self.cart_expires_in <= 0:
            raise ValueError("cart_expires_in must be a positive number of seconds")
        self.keys = RedisKeys(self.namespace)

    @classmethod
    def from_env(cls, redis: Optional[Any] = None, models: Optional[ModelRegistry] = None) -> "CartConfig":
        """
        Build config from environment variables.

        - CART_TTL_SECONDS (default 86400)
        - CART_UNIT_COST_FIELD (default "unit_cost")
        - CART_QUANTITY_FIELD (default "quantity")
        - CART_KEY_NAMESPACE (default "rediscart")

        The Redis client defaults to the Upstash singleton.
        """
        if redis is None:
            from rediscart.db import get_redis
            redis = get_redis()

        return cls(
            redis=redis,
            unit_cost_field=os.environ.get("CART_UNIT_COST_FIELD", DEFAULT_UNIT_COST_FIELD),
            quantity_field=os.environ.get("CART_QUANTITY_FIELD", DEFAULT_QUANTITY_FIELD),
            cart_expires_in=int(os.environ.get("CART_TTL_SECONDS", TTL.CART)),
            namespace=os.environ.get("CART_KEY_NAMESPACE", RedisKeys.DEFAULT_NAMESPACE),
            models=models if models is not None else ModelRegistry(),
        )
