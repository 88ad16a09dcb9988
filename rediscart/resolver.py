"""Resolution of cart item types to application domain entities."""
from typing import Any, Awaitable, Callable, Dict

from rediscart.errors import ModelNotRegisteredError
from rediscart.logging import get_logger

logger = get_logger(__name__)

Finder = Callable[[str], Awaitable[Any]]


class ModelRegistry:
    """
    Maps item type names to async finders.

    Usage:
        models = ModelRegistry()
        models.register("Book", book_repo.get_by_id)
        book = await models.resolve("Book", "1")

    What a finder does when the entity is missing (return None, raise) is up
    to the finder; resolve passes it through untouched.
    """

    def __init__(self) -> None:
        self._finders: Dict[str, Finder] = {}

    def register(self, type_name: str, finder: Finder) -> None:
        self._finders[type_name] = finder

    async def resolve(self, type_name: str, item_id: str) -> Any:
        finder = self._finders.get(type_name)
        if finder is None:
            logger.warning(f"No finder for item type {type_name!r}")
            raise ModelNotRegisteredError(type_name)
        return await finder(item_id)
