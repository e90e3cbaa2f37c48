"""Stores package: persistence backends for jar collections and the registry that selects them."""

from .base import BaseJarStore  # noqa: F401
from .defaults_store import DefaultsJarStore, MirroredJarStore
from .file_store import JsonFileJarStore
from .registry import StoreRegistry

StoreRegistry.register(JsonFileJarStore.name, JsonFileJarStore)
StoreRegistry.register(DefaultsJarStore.name, DefaultsJarStore)
StoreRegistry.register(MirroredJarStore.name, MirroredJarStore)
