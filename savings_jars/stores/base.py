"""Base persistence abstraction for jar collections.

Every backend implements a strict ``read`` and a ``save``; the shared ``load`` wraps ``read`` so
callers always get a usable collection, falling back to an empty one on first run or on damage.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from savings_jars.core.errors import PersistenceError
from savings_jars.core.models import Jar
from savings_jars.core.settings import Settings
from savings_jars.core.utils import get_logger

logger = get_logger("savings-jars.store")


class BaseJarStore(ABC):
    """Abstract base class for all jar stores."""

    name: str = "base"

    @classmethod
    @abstractmethod
    def from_settings(cls, settings: Settings) -> "BaseJarStore":
        """Build the store from application settings."""

    @abstractmethod
    def read(self) -> list[Jar] | None:
        """Return the stored jars, None when nothing was ever saved, or raise PersistenceError."""

    @abstractmethod
    def save(self, jars: Sequence[Jar]) -> None:
        """Durably replace the stored collection, raising PersistenceError on failure."""

    def load(self) -> list[Jar]:
        """Return the stored jars, or an empty list when nothing usable is stored."""
        try:
            jars = self.read()
        except PersistenceError as exc:
            logger.warning(f"[{self.name}] Falling back to an empty collection: {exc}")
            return []
        if jars is None:
            logger.info(f"[{self.name}] No saved jars found; starting empty")
            return []
        return jars
