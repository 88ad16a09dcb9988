"""
Cart errors.

Message constants are shared between the raising code and the tests.
"""

ERROR_UNKNOWN_FIELD = "Unknown field"
ERROR_MODEL_NOT_REGISTERED = "No finder registered for item type"
ERROR_REDIS_NOT_CONFIGURED = "UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set"

# Substrings of Redis error replies that the cart recovers from
REDIS_WRONGTYPE = "WRONGTYPE"
REDIS_NOSCRIPT = "NOSCRIPT"


class CartError(Exception):
    """Base class for cart errors."""


class ConfigError(CartError, ValueError):
    """Required configuration is missing or invalid."""


class UnknownFieldError(CartError, KeyError):
    """A field was read or written that the record was not created with."""

    def __init__(self, field: str, declared=()):
        self.field = field
        self.declared = tuple(sorted(declared))
        super().__init__(field)

    def __str__(self) -> str:
        return f"{ERROR_UNKNOWN_FIELD}: {self.field!r} (declared: {', '.join(self.declared)})"


class ModelNotRegisteredError(CartError, LookupError):
    """Item type has no domain finder registered."""

    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f"{ERROR_MODEL_NOT_REGISTERED}: {type_name!r}")


def is_wrongtype_error(error: Exception) -> bool:
    """True if a Redis error reply says the key holds another data type."""
    return REDIS_WRONGTYPE in str(error)


def is_noscript_error(error: Exception) -> bool:
    """True if a Redis error reply says the script SHA is not cached."""
    return REDIS_NOSCRIPT in str(error)
