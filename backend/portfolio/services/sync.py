from __future__ import annotations

import logging
from typing import Any, Dict, List

from .. import repository
from ..errors import InvalidInput
from . import dropbox_client, llm_client, pdf_extract
from .batch import BatchReport
from .classifier import assign_themes
from .filename_match import metadata_from_filename
from .theme_scorer import MatchMode, resolve_theme

logger = logging.getLogger(__name__)


def _analyze(text: str, filename: str) -> Dict[str, Any]:
    if not llm_client.is_configured():
        logger.info(f"No model key configured, using filename metadata for {filename}")
        return metadata_from_filename(filename)
    analysis = llm_client.analyze_paper_text(text, filename)
    return {
        "title": analysis.title,
        "authors": analysis.authors or ["Unknown Author"],
        "year": analysis.year,
        "venue": analysis.venue,
        "summary": analysis.summary,
        "keywords": analysis.keywords,
        "research_area": analysis.research_area,
        "analysis_source": "model",
    }


def import_file(conn, entry: Dict[str, Any]) -> int:
    """Download, analyze, classify and store one Dropbox PDF; returns the paper id."""
    name = entry.get("name") or ""
    path = entry.get("path_lower") or entry.get("path_display") or ""
    data = dropbox_client.download_file(path)
    text = pdf_extract.extract_text_from_bytes(data)
    if not text.strip():
        raise InvalidInput("No text extracted")

    meta = _analyze(text, name)
    area = meta.pop("research_area", "")
    keywords = meta.get("keywords") or []
    meta.update(
        {
            "dropbox_file_id": entry.get("id"),
            "dropbox_path": path,
            "full_text": pdf_extract.excerpt(text),
        }
    )
    paper_id = repository.insert_paper(conn, meta)
    primary_id = resolve_theme(conn, area, keywords, mode=MatchMode.LENIENT, allow_create=True)
    assign_themes(conn, paper_id, area, keywords, primary_id=primary_id)
    return paper_id


def sync_dropbox(conn) -> BatchReport:
    files = dropbox_client.list_pdf_files()
    known = repository.known_dropbox_ids(conn)
    report = BatchReport()
    logger.info(f"Starting Dropbox sync of {len(files)} PDF files")
    for entry in files:
        name = entry.get("name") or entry.get("id") or "?"
        if entry.get("id") in known:
            report.skipped(name, "already imported")
            continue
        try:
            paper_id = import_file(conn, entry)
        except Exception as exc:
            conn.rollback()
            logger.error(f"Error processing file {name}: {exc}")
            report.error(name, getattr(exc, "message", str(exc)))
            continue
        conn.commit()
        known.add(entry.get("id"))
        report.added(name, paper_id)
        logger.info(f"Imported {name} as paper {paper_id}")
    logger.info(
        f"Sync completed. New papers: {report.count('added')}, "
        f"skipped: {report.count('skipped')}, errors: {report.count('error')}"
    )
    return report


def sync_summary(report: BatchReport) -> Dict[str, Any]:
    return {
        "totalPdfFiles": report.total,
        "newPapers": report.count("added"),
        "skippedFiles": report.count("skipped"),
        "errorFiles": report.count("error"),
        "skippedFileNames": report.keys("skipped"),
        "errorDetails": report.error_details("name"),
    }


def check_new_papers(conn) -> Dict[str, Any]:
    files = dropbox_client.list_pdf_files()
    known = repository.known_dropbox_ids(conn)
    new_files: List[Dict[str, Any]] = [f for f in files if f.get("id") not in known]
    logger.info(f"Found {len(new_files)} new papers not yet in database")
    return {
        "totalDropboxFiles": len(files),
        "existingInDatabase": len(known),
        "newFiles": len(new_files),
        "newFileNames": [f.get("name") for f in new_files],
        "needsSync": bool(new_files),
    }
