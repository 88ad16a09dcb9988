"""Redis key layout for carts."""
import re

_GLOB_SPECIAL = re.compile(r"([\\*?\[\]])")


def escape_glob(value: str) -> str:
    """Escape Redis KEYS/SCAN glob metacharacters so ``value`` matches literally."""
    return _GLOB_SPECIAL.sub(r"\\\1", value)


class RedisKeys:
    """
    Key names under a namespace.

    {ns}:cart:{cart_id}         current JSON document, or the legacy set of line item suffixes
    {ns}:cart:{cart_id}:*       legacy per-cart sub-keys
    {ns}:line_item:{suffix}     legacy line item hash
    """

    DEFAULT_NAMESPACE = "rediscart"

    def __init__(self, namespace: str = DEFAULT_NAMESPACE):
        self.namespace = namespace

    def cart_key(self, cart_id: str) -> str:
        return f"{self.namespace}:cart:{cart_id}"

    @property
    def line_item_prefix(self) -> str:
        return f"{self.namespace}:line_item:"

    def line_item_key(self, suffix: str) -> str:
        return f"{self.line_item_prefix}{suffix}"

    def cart_subkey_pattern(self, cart_id: str) -> str:
        # Only the "*" after the colon is a wildcard; ids like "4*" match themselves
        return f"{escape_glob(self.cart_key(cart_id))}:*"
