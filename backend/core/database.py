"""
Database connections — one Database per named connection, each owning its
SQLAlchemy engine and its own ModelRegistry. DatabaseManager keeps the live
set plus the configs that failed to connect (parked for an explicit retry).
"""
import logging
import time
from typing import Any, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from config import settings
from core.config_store import ConfigStore
from core.exceptions import DatabaseConnectionError, DatabaseNotFoundError
from core.introspector import auto_associate, discover_models
from core.registry import ModelRegistry
from models.connection import DatabaseConfig

logger = logging.getLogger(__name__)


def create_engine_from_config(config: DatabaseConfig) -> Engine:
    """Build and test a SQLAlchemy engine from a DatabaseConfig."""
    url = config.get_sqlalchemy_url()
    if config.is_sqlite:
        # FastAPI runs sync routes in a threadpool
        engine = create_engine(url, pool_pre_ping=True, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(
            url,
            pool_pre_ping=True,
            pool_size=settings.POOL_SIZE,
            max_overflow=settings.POOL_MAX_OVERFLOW,
            pool_timeout=settings.POOL_TIMEOUT_SECONDS,
            pool_recycle=settings.POOL_RECYCLE_SECONDS,
        )
    # Validate the connection immediately
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        engine.dispose()
        raise DatabaseConnectionError(f"Could not connect to {config.dialect} database: {e}") from e
    return engine


class Database:
    def __init__(self, name: str, config: DatabaseConfig):
        self.name = name
        self.config = config
        self.registry = ModelRegistry()
        self.engine: Optional[Engine] = None
        self.last_error: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self.engine is not None

    def connect(self) -> None:
        """Open the engine, then load every live table and its foreign keys into the registry."""
        try:
            self.engine = create_engine_from_config(self.config)
        except DatabaseConnectionError as e:
            self.last_error = e.message
            logger.error("Failed to connect database '%s': %s", self.name, e.message)
            raise
        logger.info("Connected to %s database '%s'", self.config.dialect, self.name)
        try:
            self.refresh()
        except SQLAlchemyError as e:
            self.engine.dispose()
            self.engine = None
            self.registry.clear()
            self.last_error = f"Schema discovery failed: {e}"
            logger.error("Schema discovery failed for database '%s': %s", self.name, e)
            raise DatabaseConnectionError(self.last_error) from e
        self.last_error = None

    def refresh(self) -> dict[str, Any]:
        """Discover tables not yet registered and wire their foreign keys."""
        engine = self.get_engine()
        discovered = discover_models(engine, self.registry)
        associations = auto_associate(engine, self.registry)
        return {"discovered": discovered, "associations_added": associations}

    def disconnect(self) -> None:
        if self.engine is None:
            logger.debug("Database '%s' already disconnected", self.name)
            return
        self.engine.dispose()
        self.engine = None
        self.registry.clear()
        logger.info("Database '%s' disconnected", self.name)

    def get_engine(self) -> Engine:
        if self.engine is None:
            raise DatabaseConnectionError(f"Database '{self.name}' is not connected")
        return self.engine

    def is_healthy(self) -> bool:
        return self.connected

    def ping(self) -> float:
        """Round-trip a SELECT 1. Returns elapsed milliseconds."""
        engine = self.get_engine()
        start = time.perf_counter()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return round((time.perf_counter() - start) * 1000, 2)

    def version(self) -> Optional[str]:
        if self.engine is None:
            return None
        if self.config.is_sqlite:
            with self.engine.connect() as conn:
                return conn.execute(text("SELECT sqlite_version()")).scalar()
        info = self.engine.dialect.server_version_info
        return ".".join(str(p) for p in info) if info else None

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "dialect": self.config.dialect,
            "connected": self.connected,
            "models": len(self.registry),
            "associations": self.registry.association_count(),
        }


class DatabaseManager:
    def __init__(self, store: Optional[ConfigStore] = None):
        self.store = store or ConfigStore(None)
        self.databases: dict[str, Database] = {}
        self.failed: dict[str, Database] = {}

    def __contains__(self, name: str) -> bool:
        return name in self.databases

    def names(self) -> list[str]:
        return list(self.databases.keys())

    def add_database(self, name: str, config: DatabaseConfig, persist: bool = True) -> Database:
        """
        Connect ``name``, replacing any live connection of the same name.
        A connection failure parks the database for retry_failed() and re-raises.
        """
        existing = self.databases.pop(name, None)
        if existing is not None:
            existing.disconnect()
            logger.info("Disconnected existing database '%s'", name)
        if persist:
            self.store.save(name, config)

        database = Database(name, config)
        try:
            database.connect()
        except DatabaseConnectionError:
            self.failed[name] = database
            raise
        self.failed.pop(name, None)
        self.databases[name] = database
        logger.info("Database '%s' added (%d models)", name, len(database.registry))
        return database

    def get_database(self, name: str) -> Database:
        database = self.databases.get(name)
        if database is None:
            raise DatabaseNotFoundError(name, self.names())
        return database

    def remove_database(self, name: str) -> None:
        database = self.databases.pop(name, None)
        parked = self.failed.pop(name, None)
        if database is None and parked is None:
            raise DatabaseNotFoundError(name, self.names())
        if database is not None:
            database.disconnect()
        self.store.remove(name)
        logger.info("Database '%s' removed", name)

    def disconnect_all(self) -> None:
        for name, database in self.databases.items():
            try:
                database.disconnect()
            except SQLAlchemyError as e:
                logger.warning("Failed to disconnect database '%s': %s", name, e)
        self.databases.clear()
        logger.info("All databases disconnected")

    def health_status(self) -> dict[str, bool]:
        return {name: db.is_healthy() for name, db in self.databases.items()}

    def retry_failed(self) -> dict[str, list[str]]:
        ok: list[str] = []
        failed: list[str] = []
        for name, database in list(self.failed.items()):
            try:
                database.connect()
            except DatabaseConnectionError:
                failed.append(name)
                continue
            self.databases[name] = database
            del self.failed[name]
            logger.info("Database '%s' reconnected", name)
            ok.append(name)
        return {"ok": ok, "failed": failed}

    def connect_persisted(self) -> None:
        """Reconnect every stored config. Failures are parked, never raised."""
        for entry in self.store.entries():
            try:
                self.add_database(entry.name, entry.config, persist=False)
            except DatabaseConnectionError:
                logger.warning("Stored database '%s' unavailable, parked for retry", entry.name)
