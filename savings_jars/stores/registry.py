"""Store registry for selecting a persistence backend by name."""

from typing import ClassVar

from savings_jars.core.settings import Settings
from savings_jars.stores.base import BaseJarStore


class StoreRegistry:
    """Registry for jar store classes."""

    _registry: ClassVar[dict[str, type[BaseJarStore]]] = {}

    @classmethod
    def register(cls, name: str, store_cls: type[BaseJarStore]) -> None:
        """Register a store class with a given name."""
        cls._registry[name] = store_cls

    @classmethod
    def get(cls, name: str) -> type[BaseJarStore]:
        """Retrieve a store class by name."""
        try:
            return cls._registry[name]
        except KeyError:
            msg = f"Unknown store backend {name!r}; available: {', '.join(cls.available())}"
            raise ValueError(msg) from None

    @classmethod
    def available(cls) -> list[str]:
        """List all available store names."""
        return list(cls._registry.keys())

    @classmethod
    def create(cls, settings: Settings) -> BaseJarStore:
        """Instantiate the backend named by ``settings.store_backend``."""
        return cls.get(settings.store_backend).from_settings(settings)
