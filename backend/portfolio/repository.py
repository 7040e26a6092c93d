from __future__ import annotations

import json
import logging
import sqlite3
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .db import DEFAULT_THEME_NAME, PAPER_TYPES
from .errors import PersistenceError

logger = logging.getLogger(__name__)


PAPER_FIELDS = [
    "title",
    "authors",
    "year",
    "venue",
    "summary",
    "keywords",
    "full_text",
    "doi",
    "link",
    "volume",
    "issue",
    "page_start",
    "page_end",
    "type",
    "dropbox_file_id",
    "dropbox_path",
    "analysis_source",
    "created_at",
    "updated_at",
]

JSON_LIST_FIELDS = {"authors", "keywords"}

THEME_COLORS = [
    "bg-blue-100 text-blue-800",
    "bg-green-100 text-green-800",
    "bg-purple-100 text-purple-800",
    "bg-orange-100 text-orange-800",
    "bg-red-100 text-red-800",
    "bg-indigo-100 text-indigo-800",
]


def _now_ts() -> int:
    return int(time.time())


def _json_dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def load_list(value: Any) -> List[Any]:
    """Decode a stored JSON array; anything else becomes a one-item list."""
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return [value]
    if isinstance(parsed, list):
        return parsed
    return [parsed]


def normalize_type(value: Optional[str]) -> str:
    if isinstance(value, str) and value.strip().lower() in PAPER_TYPES:
        return value.strip().lower()
    return "other"


def _encode(field: str, value: Any) -> Any:
    if field in JSON_LIST_FIELDS and value is not None and not isinstance(value, str):
        return _json_dumps(list(value))
    return value


def insert_paper(conn, data: Dict[str, Any]) -> int:
    fields = PAPER_FIELDS
    values = [_encode(field, data.get(field)) for field in fields]
    now_ts = _now_ts()
    for key in ("created_at", "updated_at"):
        idx = fields.index(key)
        if values[idx] is None:
            values[idx] = now_ts
    idx = fields.index("type")
    values[idx] = normalize_type(values[idx])
    placeholders = ",".join(["?"] * len(fields))
    try:
        cur = conn.execute(
            f"INSERT INTO papers ({','.join(fields)}) VALUES ({placeholders})",
            values,
        )
    except sqlite3.Error as exc:
        raise PersistenceError(f"Failed to insert paper: {exc}") from exc
    return cur.lastrowid


def update_paper(conn, paper_id: int, data: Dict[str, Any]) -> None:
    fields = []
    values = []
    updates = dict(data)
    updates["updated_at"] = _now_ts()
    for key, value in updates.items():
        if key not in PAPER_FIELDS:
            continue
        if key == "type":
            value = normalize_type(value)
        fields.append(f"{key} = ?")
        values.append(_encode(key, value))
    if not fields:
        return
    values.append(paper_id)
    try:
        conn.execute(f"UPDATE papers SET {', '.join(fields)} WHERE id = ?", values)
    except sqlite3.Error as exc:
        raise PersistenceError(f"Failed to update paper {paper_id}: {exc}") from exc


def get_paper_row(conn, paper_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute("SELECT * FROM papers WHERE id = ?", (paper_id,)).fetchone()
    return dict(row) if row else None


def find_paper_by_dropbox_id(conn, file_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not file_id:
        return None
    row = conn.execute(
        "SELECT id, title FROM papers WHERE dropbox_file_id = ?", (file_id,)
    ).fetchone()
    return dict(row) if row else None


def known_dropbox_ids(conn) -> set[str]:
    rows = conn.execute(
        "SELECT dropbox_file_id FROM papers WHERE dropbox_file_id IS NOT NULL"
    ).fetchall()
    return {r["dropbox_file_id"] for r in rows}


def flatten_nested_lists(conn) -> int:
    """Rewrite authors/keywords stored as ``[[...]]`` to their inner list."""
    fixed = 0
    for row in conn.execute("SELECT id, authors, keywords FROM papers").fetchall():
        updates = {}
        for field in ("authors", "keywords"):
            value = load_list(row[field])
            if value and isinstance(value[0], list):
                updates[field] = value[0]
        if updates:
            update_paper(conn, row["id"], updates)
            fixed += 1
    return fixed


def delete_all_papers(conn) -> int:
    count = conn.execute("SELECT COUNT(*) AS c FROM papers").fetchone()["c"]
    conn.execute("DELETE FROM paper_themes")
    conn.execute("DELETE FROM papers")
    return count


# Themes


def list_themes(conn) -> List[Dict[str, Any]]:
    rows = conn.execute("SELECT * FROM themes ORDER BY id").fetchall()
    return [dict(r) for r in rows]


def find_theme_by_name(conn, name: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        "SELECT * FROM themes WHERE LOWER(name) = LOWER(?) ORDER BY id LIMIT 1",
        (name,),
    ).fetchone()
    return dict(row) if row else None


def create_theme(
    conn,
    name: str,
    description: Optional[str] = None,
    color: Optional[str] = None,
    keywords: Iterable[str] = (),
) -> Dict[str, Any]:
    if color is None:
        count = conn.execute("SELECT COUNT(*) AS c FROM themes").fetchone()["c"]
        color = THEME_COLORS[count % len(THEME_COLORS)]
    if description is None:
        emphasis = ", ".join(list(keywords)[:3])
        description = f"Research focusing on {name.lower()}"
        if emphasis:
            description += f" with emphasis on {emphasis}"
    now_ts = _now_ts()
    try:
        cur = conn.execute(
            "INSERT INTO themes (name, description, color, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
            (name, description, color, now_ts, now_ts),
        )
    except sqlite3.Error as exc:
        raise PersistenceError(f"Failed to create theme {name!r}: {exc}") from exc
    logger.info(f"Created theme {name!r} with id {cur.lastrowid}")
    row = conn.execute("SELECT * FROM themes WHERE id = ?", (cur.lastrowid,)).fetchone()
    return dict(row)


def default_theme_id(conn) -> int:
    """Lowest-id theme; seeds the general theme when none exist."""
    row = conn.execute("SELECT id FROM themes ORDER BY id LIMIT 1").fetchone()
    if row:
        return row["id"]
    theme = create_theme(
        conn,
        DEFAULT_THEME_NAME,
        keywords=["entrepreneurship", "innovation"],
    )
    return theme["id"]


def delete_all_themes(conn) -> None:
    conn.execute("DELETE FROM paper_themes")
    conn.execute("DELETE FROM themes")


# Paper <-> theme associations


def set_paper_themes(conn, paper_id: int, theme_ids: Iterable[int]) -> List[int]:
    """Replace every association of the paper with ``theme_ids`` in order."""
    ordered: List[int] = []
    for theme_id in theme_ids:
        if theme_id is None or theme_id in ordered:
            continue
        ordered.append(int(theme_id))
    try:
        conn.execute("DELETE FROM paper_themes WHERE paper_id = ?", (paper_id,))
        for position, theme_id in enumerate(ordered):
            conn.execute(
                "INSERT OR IGNORE INTO paper_themes (paper_id, theme_id, position) VALUES (?, ?, ?)",
                (paper_id, theme_id, position),
            )
    except sqlite3.Error as exc:
        raise PersistenceError(f"Failed to assign themes to paper {paper_id}: {exc}") from exc
    return ordered


def remove_paper_theme(conn, paper_id: int, theme_id: int) -> int:
    cur = conn.execute(
        "DELETE FROM paper_themes WHERE paper_id = ? AND theme_id = ?",
        (paper_id, theme_id),
    )
    return cur.rowcount


def get_paper_themes(conn, paper_id: int) -> List[Dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT t.id, t.name, t.color, t.description
        FROM paper_themes pt
        JOIN themes t ON pt.theme_id = t.id
        WHERE pt.paper_id = ?
        ORDER BY pt.position, t.name
        """,
        (paper_id,),
    ).fetchall()
    return [dict(r) for r in rows]


def _themes_by_paper(conn, paper_ids: Optional[List[int]] = None) -> Dict[int, List[Dict[str, Any]]]:
    sql = """
        SELECT pt.paper_id, t.id, t.name, t.color, t.description
        FROM paper_themes pt
        JOIN themes t ON pt.theme_id = t.id
    """
    params: List[Any] = []
    if paper_ids is not None:
        if not paper_ids:
            return {}
        sql += f" WHERE pt.paper_id IN ({','.join(['?'] * len(paper_ids))})"
        params = list(paper_ids)
    sql += " ORDER BY pt.paper_id, pt.position, t.name"
    out: Dict[int, List[Dict[str, Any]]] = {}
    for row in conn.execute(sql, params).fetchall():
        item = dict(row)
        pid = item.pop("paper_id")
        out.setdefault(pid, []).append(item)
    return out


# Client formatting


def format_paper(paper: Dict[str, Any], themes: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    themes = themes or []
    primary = themes[0] if themes else None
    authors = load_list(paper.get("authors")) or ["Unknown Author"]
    return {
        "id": paper.get("id"),
        "title": paper.get("title"),
        "authors": authors,
        "year": paper.get("year"),
        "venue": paper.get("venue"),
        "summary": paper.get("summary"),
        "keywords": load_list(paper.get("keywords")),
        "themes": themes,
        "themeId": primary["id"] if primary else None,
        "themeName": primary["name"] if primary else None,
        "themeColor": primary["color"] if primary else None,
        "doi": paper.get("doi"),
        "link": paper.get("link"),
        "volume": paper.get("volume"),
        "issue": paper.get("issue"),
        "pageStart": paper.get("page_start"),
        "pageEnd": paper.get("page_end"),
        "type": paper.get("type") or "other",
        "dropboxPath": paper.get("dropbox_path"),
        "dropboxFileId": paper.get("dropbox_file_id"),
        "analysisSource": paper.get("analysis_source"),
    }


def _as_date(ts: Optional[int]) -> str:
    if ts:
        return datetime.fromtimestamp(int(ts), tz=timezone.utc).strftime("%Y-%m-%d")
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%d")


def format_theme(theme: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": theme.get("id"),
        "name": theme.get("name"),
        "description": theme.get("description"),
        "paperCount": int(theme.get("paper_count") or 0),
        "color": theme.get("color"),
        "lastUpdated": _as_date(theme.get("updated_at")),
    }


def fetch_paper(conn, paper_id: int) -> Optional[Dict[str, Any]]:
    paper = get_paper_row(conn, paper_id)
    if not paper:
        return None
    return format_paper(paper, get_paper_themes(conn, paper_id))


def fetch_papers(conn) -> List[Dict[str, Any]]:
    rows = conn.execute("SELECT * FROM papers ORDER BY year DESC, title ASC").fetchall()
    themes = _themes_by_paper(conn)
    return [format_paper(dict(r), themes.get(r["id"], [])) for r in rows]


def fetch_themes(conn) -> List[Dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT t.*, COUNT(pt.paper_id) AS paper_count
        FROM themes t
        LEFT JOIN paper_themes pt ON pt.theme_id = t.id
        GROUP BY t.id
        ORDER BY paper_count DESC, t.name ASC
        """
    ).fetchall()
    return [format_theme(dict(r)) for r in rows]


def fetch_dataset(conn) -> Dict[str, Any]:
    return {"papers": fetch_papers(conn), "themes": fetch_themes(conn)}
