"""Cart line items: records, the type/id index, and item views."""
import hashlib
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, List, Optional, Union

from rediscart.errors import UnknownFieldError
from rediscart.money import to_cents, to_int

if TYPE_CHECKING:
    from .service import Cart

Value = Union[str, int, float, None]


class Record:
    """
    Field map for one line item.

    The field names present at construction are the only ones that can be
    read or written afterwards.
    """

    __slots__ = ("_data", "declared_fields")

    def __init__(self, data: Dict[str, Value]):
        fields = {str(name): value for name, value in data.items()}
        if "id" not in fields or "type" not in fields:
            raise ValueError("record requires 'id' and 'type'")
        fields["id"] = str(fields["id"])
        fields["type"] = str(fields["type"])
        self._data = fields
        self.declared_fields: FrozenSet[str] = frozenset(fields)

    @property
    def id(self) -> str:
        return self._data["id"]

    @property
    def type(self) -> str:
        return self._data["type"]

    def get(self, field: str) -> Value:
        if field not in self.declared_fields:
            raise UnknownFieldError(field, self.declared_fields)
        return self._data[field]

    def set(self, field: str, value: Value) -> None:
        if field not in self.declared_fields:
            raise UnknownFieldError(field, self.declared_fields)
        self._data[field] = value

    def to_dict(self) -> Dict[str, Value]:
        return dict(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"Record({self._data!r})"


class ItemIndex:
    """Records grouped by type, then by id."""

    def __init__(self) -> None:
        self._buckets: Dict[str, Dict[str, Record]] = {}

    def bucket(self, type_name: str) -> Dict[str, Record]:
        """Get the id map for a type, creating an empty one if missing."""
        return self._buckets.setdefault(type_name, {})

    def get(self, type_name: str, item_id: str) -> Optional[Record]:
        return self._buckets.get(type_name, {}).get(item_id)

    def put(self, record: Record) -> None:
        self.bucket(record.type)[record.id] = record

    def remove(self, type_name: str, item_id: str) -> Optional[Record]:
        bucket = self._buckets.get(type_name)
        if bucket is None:
            return None
        record = bucket.pop(item_id, None)
        if not bucket:
            del self._buckets[type_name]
        return record

    def records(self, type_name: Optional[str] = None) -> List[Record]:
        if type_name is not None:
            return list(self._buckets.get(type_name, {}).values())
        return [record for bucket in self._buckets.values() for record in bucket.values()]

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._buckets.values())

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, Value]]]:
        return {
            type_name: {item_id: record.to_dict() for item_id, record in bucket.items()}
            for type_name, bucket in self._buckets.items()
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ItemIndex":
        index = cls()
        for type_name, bucket in (data or {}).items():
            # Lua's cjson writes an empty table as [] rather than {}
            if not bucket:
                continue
            for item_id, fields in bucket.items():
                index.put(Record(fields))
        return index


class Item:
    """
    View over one record of a cart.

    Fields the record was created with are readable as attributes
    (``item.unit_cost``); writes go through ``set``.
    """

    def __init__(self, cart: "Cart", record: Record):
        self.cart = cart
        self.record = record

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def type(self) -> str:
        return self.record.type

    @property
    def key(self) -> str:
        """Stable identity hash of "{type}/{id}" (never a storage key)."""
        return hashlib.sha1(f"{self.type}/{self.id}".encode("utf-8")).hexdigest()

    def get(self, field: str) -> Value:
        return self.record.get(field)

    def set(self, field: str, value: Value) -> None:
        self.record.set(field, value)

    def __getattr__(self, name: str) -> Value:
        if name.startswith("_") or name in ("cart", "record"):
            raise AttributeError(name)
        try:
            return self.record.get(name)
        except UnknownFieldError:
            raise AttributeError(
                f"{type(self).__name__!r} has no attribute or field {name!r}"
            ) from None

    def unit_cost_cents(self) -> int:
        return to_cents(self.record.to_dict().get(self.cart.config.unit_cost_field))

    def units(self) -> int:
        """Configured quantity field parsed as an int."""
        return to_int(self.record.to_dict().get(self.cart.config.quantity_field))

    def cost_cents(self) -> int:
        return self.unit_cost_cents() * self.units()

    def cost(self) -> float:
        """Unit cost truncated to whole cents, times quantity."""
        return self.cost_cents() / 100.0

    async def save(self) -> None:
        await self.cart.save()

    async def destroy(self) -> None:
        """Remove from the cart and persist the cart right away."""
        await self.cart.remove_item(self)
        await self.cart.save()

    async def model(self) -> Any:
        """Domain entity for this item, via the cart's model registry."""
        return await self.cart.config.models.resolve(self.type, self.id)

    def to_dict(self) -> Dict[str, Value]:
        return self.record.to_dict()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Item):
            return NotImplemented
        return self.cart is other.cart and self.record is other.record

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return f"<Item {self.type}/{self.id}>"
