#!/usr/bin/env python3
"""
Seed a local SQLite database with a small blog for Tablesmith development.
Usage (from the repository root):
    python scripts/seed_demo_db.py
Creates: scripts/demo.db

Point PRIMARY_SQLITE_PATH at the file, or connect it at runtime:
    POST /api/databases/demo  {"dialect": "sqlite", "database": "scripts/demo.db"}
Foreign keys are declared so discovery wires up the associations.
"""
import sqlite3
import random
from datetime import datetime, timedelta
from pathlib import Path

DB_PATH = Path(__file__).parent / "demo.db"

DDL = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        email       VARCHAR(255) NOT NULL,
        name        VARCHAR(100) NOT NULL,
        created_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        CONSTRAINT uq_users_email UNIQUE (email)
    )""",
    """
    CREATE TABLE IF NOT EXISTS profiles (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id     INTEGER NOT NULL,
        bio         TEXT,
        website     VARCHAR(255),
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )""",
    """
    CREATE TABLE IF NOT EXISTS categories (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        name        VARCHAR(100) NOT NULL,
        slug        VARCHAR(100) NOT NULL,
        CONSTRAINT uq_categories_slug UNIQUE (slug)
    )""",
    """
    CREATE TABLE IF NOT EXISTS posts (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        title       VARCHAR(200) NOT NULL,
        body        TEXT,
        published   BOOLEAN DEFAULT 0,
        user_id     INTEGER NOT NULL,
        category_id INTEGER,
        created_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
        FOREIGN KEY (category_id) REFERENCES categories(id) ON DELETE SET NULL
    )""",
    """
    CREATE TABLE IF NOT EXISTS comments (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        post_id     INTEGER NOT NULL,
        user_id     INTEGER,
        body        TEXT NOT NULL,
        created_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (post_id) REFERENCES posts(id) ON DELETE CASCADE,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE SET NULL
    )""",
    """
    CREATE TABLE IF NOT EXISTS tags (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        name        VARCHAR(50) NOT NULL,
        CONSTRAINT uq_tags_name UNIQUE (name)
    )""",
    """
    CREATE TABLE IF NOT EXISTS post_tags (
        post_id     INTEGER NOT NULL,
        tag_id      INTEGER NOT NULL,
        PRIMARY KEY (post_id, tag_id),
        FOREIGN KEY (post_id) REFERENCES posts(id) ON DELETE CASCADE,
        FOREIGN KEY (tag_id) REFERENCES tags(id) ON DELETE CASCADE
    )""",
]

CATEGORIES = ['Engineering', 'Data', 'Design', 'Operations', 'Culture']
TAGS = ['python', 'sql', 'api', 'testing', 'performance', 'security', 'release']
WORDS = ['schema', 'table', 'column', 'index', 'relation', 'query', 'model', 'migration']

def seed():
    conn = sqlite3.connect(DB_PATH)
    conn.execute("PRAGMA foreign_keys = ON")
    cur  = conn.cursor()

    for stmt in DDL:
        cur.execute(stmt)

    # categories + tags
    for c in CATEGORIES:
        cur.execute("INSERT OR IGNORE INTO categories(name, slug) VALUES (?,?)", (c, c.lower()))
    for t in TAGS:
        cur.execute("INSERT OR IGNORE INTO tags(name) VALUES (?)", (t,))

    # users + profiles (25)
    for i in range(1, 26):
        cur.execute("INSERT OR IGNORE INTO users(email, name, created_at) VALUES (?,?,?)",
                    (f"writer{i}@example.com", f"Writer {i}",
                     datetime.now() - timedelta(days=random.randint(30, 730))))
        if cur.rowcount and random.random() < 0.7:
            cur.execute("INSERT INTO profiles(user_id, bio, website) VALUES (?,?,?)",
                        (cur.lastrowid, f"Writes about {random.choice(WORDS)}s.",
                         f"https://writer{i}.example.com"))

    user_ids = [row[0] for row in cur.execute("SELECT id FROM users")]
    category_ids = [row[0] for row in cur.execute("SELECT id FROM categories")]
    tag_ids = [row[0] for row in cur.execute("SELECT id FROM tags")]

    # posts + comments + post_tags (120 posts)
    for i in range(120):
        created = datetime.now() - timedelta(days=random.randint(0, 365))
        title   = f"Notes on {random.choice(WORDS)} {random.choice(WORDS)}s #{i + 1}"
        cur.execute("INSERT INTO posts(title, body, published, user_id, category_id, created_at) VALUES (?,?,?,?,?,?)",
                    (title, " ".join(random.choices(WORDS, k=40)), random.random() < 0.8,
                     random.choice(user_ids),
                     random.choice(category_ids) if random.random() < 0.9 else None,
                     created))
        post_id = cur.lastrowid

        for tag_id in random.sample(tag_ids, random.randint(0, 3)):
            cur.execute("INSERT INTO post_tags(post_id, tag_id) VALUES (?,?)", (post_id, tag_id))

        for _ in range(random.randint(0, 6)):
            cur.execute("INSERT INTO comments(post_id, user_id, body, created_at) VALUES (?,?,?,?)",
                        (post_id, random.choice(user_ids), f"Nice take on {random.choice(WORDS)}s.",
                         created + timedelta(hours=random.randint(1, 240))))

    conn.commit()
    conn.close()
    print(f"Demo database seeded: {DB_PATH}")
    print("   Tables: users, profiles, categories, posts, comments, tags, post_tags")

if __name__ == "__main__":
    seed()
