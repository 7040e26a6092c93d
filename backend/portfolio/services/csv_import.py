from __future__ import annotations

import csv
import io
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .. import repository
from ..errors import InvalidInput
from . import llm_client
from .batch import BatchReport
from .classifier import assign_themes
from .text import dedupe_keep_order, split_delimited
from .theme_scorer import MatchMode, resolve_theme

logger = logging.getLogger(__name__)

NO_ABSTRACT = "[No abstract available]"

# Scopus export header -> paper field
COLUMN_MAP = {
    "Authors": "authors",
    "Title": "title",
    "Year": "year",
    "Source title": "venue",
    "DOI": "doi",
    "Link": "link",
    "Abstract": "abstract",
    "Author Keywords": "keywords",
    "Volume": "volume",
    "Issue": "issue",
    "Page start": "page_start",
    "Page end": "page_end",
}


def decode_csv(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def parse_rows(text: str) -> tuple[List[str], List[List[str]]]:
    rows = [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]
    if not rows:
        raise InvalidInput("CSV file is empty")
    headers = [h.strip() for h in rows[0]]
    return headers, [[cell.strip() for cell in row] for row in rows[1:]]


def row_to_paper(headers: List[str], row: List[str]) -> Dict[str, Any]:
    paper: Dict[str, Any] = {}
    for header, value in zip(headers, row):
        field = COLUMN_MAP.get(header)
        if field:
            paper[field] = value
    try:
        paper["year"] = int(paper.get("year") or "")
    except ValueError:
        paper["year"] = datetime.now().year
    return paper


def parse_authors(value: Optional[str]) -> List[str]:
    return [a.split(",")[0].strip() for a in split_delimited(value) if a.split(",")[0].strip()]


def has_abstract(paper: Dict[str, Any]) -> bool:
    abstract = (paper.get("abstract") or "").strip()
    return bool(abstract) and abstract != NO_ABSTRACT


def import_row(conn, paper: Dict[str, Any]) -> int:
    author_keywords = split_delimited(paper.get("keywords"))
    analysis = None
    if has_abstract(paper) and llm_client.is_configured():
        analysis = llm_client.analyze_abstract(paper)

    keywords = list(analysis.keywords) if analysis and analysis.keywords else dedupe_keep_order(author_keywords)
    if analysis and analysis.summary:
        summary = analysis.summary
    elif has_abstract(paper):
        summary = paper["abstract"][:300] + "..."
    else:
        summary = "No abstract available"

    paper_id = repository.insert_paper(
        conn,
        {
            "title": paper.get("title"),
            "authors": parse_authors(paper.get("authors")),
            "year": paper.get("year"),
            "venue": paper.get("venue"),
            "summary": summary,
            "keywords": keywords,
            "full_text": paper.get("abstract") or None,
            "doi": paper.get("doi") or None,
            "link": paper.get("link") or None,
            "volume": paper.get("volume") or None,
            "issue": paper.get("issue") or None,
            "page_start": paper.get("page_start") or None,
            "page_end": paper.get("page_end") or None,
            "type": "article",
            "analysis_source": "model" if analysis else "csv",
        },
    )

    all_keywords = dedupe_keep_order(author_keywords + keywords)
    primary_id = None
    area = analysis.research_area if analysis else None
    if area:
        primary_id = resolve_theme(
            conn,
            area,
            all_keywords,
            mode=MatchMode.STRICT,
            allow_create=True,
            author_keywords=author_keywords,
        )
    assign_themes(conn, paper_id, area, all_keywords, primary_id=primary_id)
    return paper_id


def import_csv(conn, data: bytes, clear_existing: bool = False) -> BatchReport:
    headers, rows = parse_rows(decode_csv(data))
    logger.info(f"CSV headers: {headers}; {len(rows)} data rows")
    if clear_existing:
        removed = repository.delete_all_papers(conn)
        conn.commit()
        logger.info(f"Cleared {removed} existing papers")

    report = BatchReport()
    for index, row in enumerate(rows, start=1):
        key = str(index)
        if len(row) < len(headers):
            report.skipped(key, "incomplete row")
            continue
        paper = row_to_paper(headers, row)
        try:
            paper_id = import_row(conn, paper)
        except Exception as exc:
            conn.rollback()
            logger.error(f"Error processing row {index}: {exc}")
            report.error(key, getattr(exc, "message", str(exc)))
            continue
        conn.commit()
        report.added(key, paper_id)
        if report.count("added") % 10 == 0:
            logger.info(f"Imported {report.count('added')} papers...")
    logger.info(f"CSV import finished: {report.count('added')} imported, {report.count('error')} errors")
    return report
