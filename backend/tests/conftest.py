import os
import sys
import tempfile

# Add the parent directory (backend) to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Keep the app's persisted configs and primary database out of the working tree
_STATE_DIR = tempfile.mkdtemp(prefix="tablesmith-tests-")
os.environ["CONFIG_STORE_PATH"] = os.path.join(_STATE_DIR, "databases.json")
os.environ["PRIMARY_SQLITE_PATH"] = os.path.join(_STATE_DIR, "primary.db")

import pytest
import sqlite3
import sqlalchemy as sa
from fastapi.testclient import TestClient

from core.registry import ModelRegistry
from main import app

BLOG_DDL = """
CREATE TABLE authors (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name VARCHAR(100) NOT NULL,
    email VARCHAR(255),
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    CONSTRAINT uq_authors_email UNIQUE (email)
);
CREATE TABLE articles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title VARCHAR(200) NOT NULL,
    published BOOLEAN DEFAULT 0,
    rating DECIMAL(3, 1),
    author_id INTEGER,
    FOREIGN KEY (author_id) REFERENCES authors(id) ON DELETE CASCADE
);
INSERT INTO authors (name, email) VALUES ('Ada', 'ada@example.com');
INSERT INTO authors (name, email) VALUES ('Brian', 'brian@example.com');
INSERT INTO articles (title, published, author_id) VALUES ('Engines', 1, 1);
INSERT INTO articles (title, published, author_id) VALUES ('Notes', 0, 1);
INSERT INTO articles (title, published, author_id) VALUES ('Pipes', 1, 2);
"""


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def temp_sqlite_db():
    """A small blog database (authors ← articles) created outside the ORM."""
    fd, path = tempfile.mkstemp(suffix=".db")
    try:
        conn = sqlite3.connect(path)
        conn.executescript(BLOG_DDL)
        conn.commit()
        conn.close()
        yield path
    finally:
        os.close(fd)
        os.remove(path)


@pytest.fixture
def empty_sqlite_path():
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    yield path
    os.remove(path)


@pytest.fixture
def engine(empty_sqlite_path):
    eng = sa.create_engine(f"sqlite:///{empty_sqlite_path}")
    yield eng
    eng.dispose()


@pytest.fixture
def blog_engine(temp_sqlite_db):
    eng = sa.create_engine(f"sqlite:///{temp_sqlite_db}")
    yield eng
    eng.dispose()


@pytest.fixture
def registry():
    return ModelRegistry()
