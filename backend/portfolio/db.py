from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager

from dotenv import load_dotenv

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

load_dotenv(os.path.join(BASE_DIR, ".env"))


def _resolve_db_path() -> str:
    url = os.getenv("DATABASE_URL", "").strip()
    if url.startswith("sqlite:///"):
        return url[len("sqlite:///"):]
    if url:
        return url
    return os.path.join(BASE_DIR, "data", "portfolio.db")


DB_PATH = _resolve_db_path()
DATA_DIR = os.path.dirname(DB_PATH) or "."

DEFAULT_THEME_NAME = "Entrepreneurship and Innovation"

PAPER_TYPES = ("book", "article", "chapter", "report", "other")


PAPERS_COLUMNS = {
    "id": "INTEGER PRIMARY KEY AUTOINCREMENT",
    "title": "TEXT",
    "authors": "TEXT",
    "year": "INTEGER",
    "venue": "TEXT",
    "summary": "TEXT",
    "keywords": "TEXT",
    "full_text": "TEXT",
    "doi": "TEXT",
    "link": "TEXT",
    "volume": "TEXT",
    "issue": "TEXT",
    "page_start": "TEXT",
    "page_end": "TEXT",
    "type": "TEXT DEFAULT 'other'",
    "dropbox_file_id": "TEXT",
    "dropbox_path": "TEXT",
    "analysis_source": "TEXT",
    "created_at": "INTEGER",
    "updated_at": "INTEGER",
}


THEMES_COLUMNS = {
    "description": "TEXT",
    "color": "TEXT",
    "created_at": "INTEGER",
    "updated_at": "INTEGER",
}


def _get_existing_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return {row[1] for row in rows}


def _ensure_columns(conn: sqlite3.Connection, table: str, columns: dict[str, str]) -> None:
    existing = _get_existing_columns(conn, table)
    for name, definition in columns.items():
        if name in existing:
            continue
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {name} {definition}")


def ensure_db() -> None:
    os.makedirs(DATA_DIR, exist_ok=True)
    with sqlite3.connect(DB_PATH) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS papers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT,
                authors TEXT,
                year INTEGER,
                venue TEXT,
                summary TEXT,
                keywords TEXT
            );
            """
        )
        _ensure_columns(conn, "papers", PAPERS_COLUMNS)
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS themes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                description TEXT,
                color TEXT
            );
            """
        )
        _ensure_columns(conn, "themes", THEMES_COLUMNS)
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS paper_themes (
                paper_id INTEGER NOT NULL,
                theme_id INTEGER NOT NULL,
                position INTEGER DEFAULT 0,
                FOREIGN KEY(paper_id) REFERENCES papers(id),
                FOREIGN KEY(theme_id) REFERENCES themes(id)
            );
            """
        )
        conn.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_paper_themes_unique "
            "ON paper_themes(paper_id, theme_id)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_paper_themes_theme ON paper_themes(theme_id)"
        )
        conn.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_papers_dropbox_file "
            "ON papers(dropbox_file_id) WHERE dropbox_file_id IS NOT NULL"
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_papers_year ON papers(year)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_papers_title ON papers(title)")
        conn.execute("UPDATE papers SET type = 'other' WHERE type IS NULL")
        conn.execute(
            "UPDATE papers SET created_at = strftime('%s','now') WHERE created_at IS NULL"
        )
        conn.execute(
            "UPDATE papers SET updated_at = strftime('%s','now') WHERE updated_at IS NULL"
        )
        conn.commit()


@contextmanager
def get_conn():
    ensure_db()
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()
