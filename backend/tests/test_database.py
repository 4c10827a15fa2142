import json

import pytest
from sqlalchemy.exc import OperationalError
from unittest.mock import patch

from core.config_store import ConfigStore
from core.database import Database, DatabaseManager
from core.exceptions import DatabaseConnectionError, DatabaseNotFoundError
from models.connection import DatabaseConfig


def sqlite_config(path: str) -> DatabaseConfig:
    return DatabaseConfig(dialect="sqlite", database=path)


BAD_CONFIG = DatabaseConfig(dialect="sqlite", database="/nonexistent-dir/sub/never.db")


def test_connect_discovers_and_associates(temp_sqlite_db):
    db = Database("blog", sqlite_config(temp_sqlite_db))
    db.connect()
    try:
        assert sorted(db.registry.names()) == ["articles", "authors"]
        assert "author" in db.registry.get("articles").associations
        assert db.is_healthy()
        assert db.ping() >= 0
        assert db.version()
    finally:
        db.disconnect()


def test_disconnect_twice_is_a_noop(temp_sqlite_db):
    db = Database("blog", sqlite_config(temp_sqlite_db))
    db.connect()
    db.disconnect()
    db.disconnect()
    assert not db.is_healthy()
    assert len(db.registry) == 0
    with pytest.raises(DatabaseConnectionError):
        db.get_engine()


def test_connect_failure_raises():
    with pytest.raises(DatabaseConnectionError):
        Database("bad", BAD_CONFIG).connect()


def test_manager_persists_and_removes(temp_sqlite_db, tmp_path):
    store_path = str(tmp_path / "dbs.json")
    manager = DatabaseManager(ConfigStore(store_path))
    manager.add_database("blog", sqlite_config(temp_sqlite_db))

    assert manager.names() == ["blog"]
    assert manager.health_status() == {"blog": True}
    with open(store_path) as f:
        assert json.load(f)["blog"]["database"] == temp_sqlite_db

    manager.remove_database("blog")
    assert manager.names() == []
    with open(store_path) as f:
        assert json.load(f) == {}
    with pytest.raises(DatabaseNotFoundError):
        manager.get_database("blog")


def test_failed_database_is_parked_for_retry(tmp_path):
    manager = DatabaseManager()
    with pytest.raises(DatabaseConnectionError):
        manager.add_database("flaky", BAD_CONFIG)
    assert "flaky" in manager.failed
    assert manager.retry_failed() == {"ok": [], "failed": ["flaky"]}

    manager.failed["flaky"].config = sqlite_config(str(tmp_path / "now-ok.db"))
    assert manager.retry_failed() == {"ok": ["flaky"], "failed": []}
    assert "flaky" in manager
    manager.disconnect_all()
    assert manager.names() == []


def test_connect_persisted(temp_sqlite_db, tmp_path):
    store = ConfigStore(str(tmp_path / "dbs.json"))
    store.save("blog", sqlite_config(temp_sqlite_db))
    store.save("gone", BAD_CONFIG)

    manager = DatabaseManager(store)
    manager.connect_persisted()
    assert manager.names() == ["blog"]
    assert list(manager.failed) == ["gone"]
    manager.disconnect_all()


def test_config_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "dbs.json"
    path.write_text("{not json")
    assert ConfigStore(str(path)).entries() == []
    assert ConfigStore(str(tmp_path / "missing.json")).entries() == []


def test_server_urls():
    pg = DatabaseConfig(dialect="postgres", host="db", user="app", password="p@ss", database="main")
    assert pg.get_sqlalchemy_url() == "postgresql+psycopg2://app:p%40ss@db:5432/main"
    my = DatabaseConfig(dialect="mysql", host="db", port=3307, user="root", database="shop")
    assert my.get_sqlalchemy_url() == "mysql+pymysql://root@db:3307/shop"
    ms = DatabaseConfig(dialect="mssql", host="db", user="sa", password="x", database="erp")
    assert ms.get_sqlalchemy_url().startswith("mssql+pyodbc://sa:x@db:1433/erp?driver=")
    assert "password" not in pg.public()


def test_discovery_failure_releases_engine(temp_sqlite_db):
    db = Database("blog", sqlite_config(temp_sqlite_db))
    boom = OperationalError("SELECT name FROM sqlite_master", {}, Exception("disk I/O error"))
    with patch("core.database.discover_models", side_effect=boom):
        with pytest.raises(DatabaseConnectionError):
            db.connect()
    assert db.engine is None
    assert len(db.registry) == 0
    assert "disk I/O error" in db.last_error


def test_discovery_failure_is_parked_not_raised_at_startup(temp_sqlite_db, tmp_path):
    store = ConfigStore(str(tmp_path / "dbs.json"))
    store.save("blog", sqlite_config(temp_sqlite_db))
    manager = DatabaseManager(store)
    boom = OperationalError("PRAGMA foreign_key_list", {}, Exception("locked"))
    with patch("core.database.auto_associate", side_effect=boom):
        manager.connect_persisted()
    assert manager.names() == []
    assert list(manager.failed) == ["blog"]

    assert manager.retry_failed() == {"ok": ["blog"], "failed": []}
    manager.disconnect_all()
