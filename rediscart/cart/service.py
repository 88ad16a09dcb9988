"""
Cart - Redis-backed shopping cart aggregate.

A cart is one JSON document under one Redis key:

    {"id": "42", "items": {"Book": {"1": {"id": "1", "type": "Book", ...}}}}

The document is loaded lazily by the first accessor and written back whole by
``save``. Carts still in the legacy set-plus-hashes layout are converted on
first load.

Usage:
    config = CartConfig.from_env()
    cart = Cart("42", config)
    await cart.add_item(id="7", type="Widget", unit_cost="2.50", quantity=3)
    await cart.save()
    total = await cart.total()

Concurrent writers are last-write-wins: ``save`` overwrites the whole
document, so changes made by another process between our load and save are
lost.
"""
import json
from typing import Any, Dict, List, Optional

from upstash_redis.errors import UpstashError

from rediscart.config import CartConfig
from rediscart.errors import is_wrongtype_error
from rediscart.logging import get_logger, sanitize_id_for_logging
from rediscart.money import from_cents
from .migration import convert_legacy_cart
from .models import Item, ItemIndex, Record, Value

logger = get_logger(__name__)


class Cart:
    """
    Shopping cart stored as a single Redis document.

    Every accessor loads the cart first if it has not been loaded yet.
    Mutations (``add_item``, ``remove_item``) only touch memory; call
    ``save`` to persist them.
    """

    def __init__(self, cart_id: str, config: CartConfig):
        self.id = str(cart_id)
        self.config = config
        self.loaded = False
        self.item_data: Optional[ItemIndex] = None

    @property
    def redis(self):
        return self.config.redis

    @property
    def key(self) -> str:
        return self.config.keys.cart_key(self.id)

    async def load(self, reload: bool = False) -> None:
        """
        Fetch the cart document.

        A WRONGTYPE reply means the key still holds a legacy cart: it is
        converted once and the read retried once. Any other error, or any
        error on the retry, propagates.
        """
        if self.loaded and not reload:
            return

        try:
            raw = await self.redis.get(self.key)
        except UpstashError as e:
            if not is_wrongtype_error(e):
                logger.error(f"Failed to load cart {sanitize_id_for_logging(self.id)}: {e}")
                raise
            await convert_legacy_cart(self.config, self.id)
            raw = await self.redis.get(self.key)

        data = json.loads(raw) if raw else {}
        self.item_data = ItemIndex.from_dict(data.get("items"))
        self.loaded = True

    async def reload(self) -> None:
        await self.load(reload=True)

    async def _ensure_loaded(self) -> ItemIndex:
        if not self.loaded:
            await self.load()
        return self.item_data

    async def save(self) -> None:
        """Write the whole cart document and reset its TTL."""
        await self._ensure_loaded()
        try:
            await self.redis.set(self.key, self.to_json(), ex=self.config.cart_expires_in)
        except UpstashError as e:
            logger.error(f"Failed to save cart {sanitize_id_for_logging(self.id)}: {e}")
            raise

    async def add_item(self, id: Any, type: str, **fields: Value) -> Item:
        """Insert or replace the record for (type, id). Not persisted until save."""
        index = await self._ensure_loaded()
        record = Record({"id": id, "type": type, **fields})
        index.put(record)
        return Item(self, record)

    async def remove_item(self, item: Item) -> None:
        """Drop an item from memory. Not persisted until save."""
        index = await self._ensure_loaded()
        index.remove(item.type, item.id)

    async def items(self, type: Optional[str] = None) -> List[Item]:
        """All items, or the items of one type, in insertion order."""
        index = await self._ensure_loaded()
        return [Item(self, record) for record in index.records(type)]

    async def contains(self, obj: Any) -> bool:
        """True if the cart holds a record for ``obj``'s class name and id."""
        return await self.find(obj) is not None

    async def find(self, obj: Any) -> Optional[Item]:
        index = await self._ensure_loaded()
        record = index.get(obj.__class__.__name__, str(obj.id))
        if record is None:
            return None
        return Item(self, record)

    async def count(self) -> int:
        """Number of records across all types."""
        return len(await self._ensure_loaded())

    async def quantity(self) -> int:
        """Sum of every record's quantity field."""
        return sum(item.units() for item in await self.items())

    async def total(self) -> float:
        """Sum of item costs, added up in whole cents."""
        items = await self.items()
        return from_cents(sum(item.cost_cents() for item in items))

    async def ttl(self) -> int:
        """Seconds until the cart expires (-1 no expiry, -2 no key)."""
        return await self.redis.ttl(self.key)

    async def touch(self) -> bool:
        """Reset the TTL to the configured duration."""
        return bool(await self.redis.expire(self.key, self.config.cart_expires_in))

    async def destroy(self) -> None:
        """Delete the cart key."""
        await self.redis.unlink(self.key)
        logger.info(f"Destroyed cart {sanitize_id_for_logging(self.id)}")

    async def reassign(self, new_id: str) -> None:
        """
        Move the cart to a new id.

        RENAME keeps the value and the TTL; the old key stops existing.
        """
        new_id = str(new_id)
        await self.redis.rename(self.key, self.config.keys.cart_key(new_id))
        logger.info(
            f"Reassigned cart {sanitize_id_for_logging(self.id)} -> {sanitize_id_for_logging(new_id)}"
        )
        self.id = new_id

    def to_dict(self) -> Dict[str, Any]:
        items = self.item_data.to_dict() if self.item_data is not None else {}
        return {"id": self.id, "items": items}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def __repr__(self) -> str:
        state = "loaded" if self.loaded else "not loaded"
        return f"<Cart {self.id} ({state})>"


class CartFactory:
    """
    Builds carts bound to one config.

    Usage:
        carts = CartFactory(CartConfig.from_env())
        cart = carts.get(session_id)
    """

    def __init__(self, config: CartConfig):
        self.config = config

    def get(self, cart_id: str) -> Cart:
        return Cart(cart_id, self.config)

    async def load(self, cart_id: str) -> Cart:
        cart = self.get(cart_id)
        await cart.load()
        return cart
