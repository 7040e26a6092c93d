from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional, Tuple

from .. import repository
from ..errors import NotFound, ServiceNotConfigured
from . import llm_client
from .batch import BatchReport
from .classifier import assign_themes
from .theme_scorer import MatchMode, resolve_theme

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 100


def default_batch_size() -> int:
    return int(os.getenv("REANALYZE_BATCH_SIZE", "10"))


def _filename(paper: Dict[str, Any]) -> str:
    path = paper.get("dropbox_path")
    if path:
        return path.rsplit("/", 1)[-1]
    return f"{paper.get('title') or 'paper'}.pdf"


def _analysis_text(paper: Dict[str, Any]) -> str:
    text = paper.get("full_text") or ""
    if len(text) >= MIN_TEXT_LENGTH:
        return text
    authors = ", ".join(str(a) for a in repository.load_list(paper.get("authors")))
    keywords = ", ".join(str(k) for k in repository.load_list(paper.get("keywords")))
    return (
        f"Title: {paper.get('title') or ''}\n"
        f"Authors: {authors}\n"
        f"Year: {paper.get('year') or ''}\n"
        f"Venue: {paper.get('venue') or ''}\n"
        f"Keywords: {keywords}"
    )


def _require_model() -> None:
    if not llm_client.is_configured():
        raise ServiceNotConfigured("ANTHROPIC_API_KEY is not configured")


def reanalyze_row(conn, paper: Dict[str, Any]) -> None:
    """Refresh summary and themes of one stored paper; other fields are untouched."""
    result = llm_client.analyze_for_reanalysis(_analysis_text(paper), _filename(paper))
    keywords = [k for k in repository.load_list(paper.get("keywords")) if isinstance(k, str)]
    repository.update_paper(conn, paper["id"], {"summary": result.summary})
    primary_id = resolve_theme(
        conn, result.research_area, keywords, mode=MatchMode.LENIENT, allow_create=False
    )
    assign_themes(conn, paper["id"], result.research_area, keywords, primary_id=primary_id)


def reanalyze_papers(conn, limit: Optional[int] = None, after_id: int = 0) -> Tuple[BatchReport, Optional[int]]:
    """Re-analyze up to ``limit`` papers with id greater than ``after_id``.

    Returns the report and the cursor for the next call, or ``None`` when
    the last page has been processed.
    """
    _require_model()
    limit = limit or default_batch_size()
    rows = conn.execute(
        "SELECT * FROM papers WHERE id > ? ORDER BY id LIMIT ?",
        (after_id, limit),
    ).fetchall()
    logger.info(f"Found {len(rows)} papers to re-analyze after id {after_id}")
    report = BatchReport()
    last_id = after_id
    for row in rows:
        paper = dict(row)
        last_id = paper["id"]
        key = str(paper["id"])
        try:
            reanalyze_row(conn, paper)
        except Exception as exc:
            conn.rollback()
            logger.error(f"Error re-analyzing paper {paper['id']}: {exc}")
            report.error(key, getattr(exc, "message", str(exc)))
            continue
        conn.commit()
        report.updated(key, paper["id"])
        logger.info(f"Re-analyzed paper {paper['id']}: {paper.get('title')}")
    next_cursor = last_id if len(rows) == limit else None
    return report, next_cursor


def reanalyze_paper(conn, paper_id: int) -> Dict[str, Any]:
    _require_model()
    paper = repository.get_paper_row(conn, paper_id)
    if not paper:
        raise NotFound("Paper not found")
    logger.info(f"Re-analyzing paper {paper_id}: {paper.get('title')}")
    reanalyze_row(conn, paper)
    return paper
