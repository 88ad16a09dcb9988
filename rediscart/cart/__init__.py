"""Cart package: line item models, legacy conversion, and the cart aggregate."""
from .models import Item, ItemIndex, Record
from .migration import RedisScript, convert_legacy_cart
from .service import Cart, CartFactory

__all__ = [
    "Cart",
    "CartFactory",
    "Item",
    "ItemIndex",
    "Record",
    "RedisScript",
    "convert_legacy_cart",
]
