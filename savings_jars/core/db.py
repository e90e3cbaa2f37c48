"""Key-value "defaults" database used as a mirror of the jar collection and for small preferences."""

from pathlib import Path

from sqlalchemy import Column, String, Text, create_engine, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from savings_jars.core.errors import PersistenceError
from savings_jars.core.utils import ensure_dir

Base = declarative_base()

JARS_KEY = "SavingsJars"
SELECTED_JAR_KEY = "selectedWidgetJarId"


class Preference(Base):
    """A single stored value addressed by key."""

    __tablename__ = "preferences"
    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)


def get_engine(url: str) -> Engine:
    """Create a SQLAlchemy engine, creating the directory of a file-backed SQLite database first."""
    parsed = make_url(url)
    if parsed.drivername.startswith("sqlite") and parsed.database and parsed.database != ":memory:":
        ensure_dir(Path(parsed.database).parent)
    return create_engine(url)


class DefaultsStore:
    """Helper class for reading and writing preferences through SQLAlchemy sessions."""

    def __init__(self, engine: Engine) -> None:
        """Bind the store to ``engine`` and make sure the preferences table exists."""
        self.engine = engine
        self.Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
        try:
            Base.metadata.create_all(engine)
        except SQLAlchemyError as exc:
            msg = f"Could not initialise defaults database: {exc}"
            raise PersistenceError(msg) from exc

    @classmethod
    def from_url(cls, url: str) -> "DefaultsStore":
        """Build a store from a database URL."""
        return cls(get_engine(url))

    def get(self, key: str) -> str | None:
        """Return the value stored under ``key``, or None."""
        try:
            with self.Session() as session:
                return session.execute(select(Preference.value).where(Preference.key == key)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            msg = f"Could not read preference {key!r}: {exc}"
            raise PersistenceError(msg) from exc

    def set(self, key: str, value: str) -> None:
        """Insert or replace the value stored under ``key``."""
        try:
            with self.Session() as session, session.begin():
                session.merge(Preference(key=key, value=value))
        except SQLAlchemyError as exc:
            msg = f"Could not write preference {key!r}: {exc}"
            raise PersistenceError(msg) from exc

    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        try:
            with self.Session() as session, session.begin():
                obj = session.get(Preference, key)
                if obj is not None:
                    session.delete(obj)
        except SQLAlchemyError as exc:
            msg = f"Could not delete preference {key!r}: {exc}"
            raise PersistenceError(msg) from exc

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        self.engine.dispose()
