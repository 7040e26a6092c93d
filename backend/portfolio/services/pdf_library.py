from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from .. import repository
from ..errors import Conflict, InvalidInput, NotFound
from . import dropbox_client
from .filename_match import (
    LENIENT_MIN_SCORE,
    STRICT_MIN_SCORE,
    best_file_match,
    suggest_filenames,
)

logger = logging.getLogger(__name__)

NAMING_CONVENTIONS = [
    {
        "name": "Author-Year-Title",
        "example": "Dimov-2020-Opportunity-Recognition.pdf",
        "description": "Most common academic convention",
    },
    {
        "name": "Year-Author-Title",
        "example": "2020-Dimov-Opportunity-Recognition.pdf",
        "description": "Chronological sorting",
    },
    {
        "name": "Year-Title",
        "example": "2020-Opportunity-Recognition.pdf",
        "description": "Simple, when the author is implied",
    },
]


def _file_ref(entry: Dict[str, Any]) -> Dict[str, Any]:
    return {"name": entry.get("name"), "path": entry.get("path_lower"), "id": entry.get("id")}


def find_pdf_link(title: Optional[str], year: Any, authors: Sequence[str]) -> Dict[str, Any]:
    """Temporary download link for the PDF best matching the paper metadata."""
    if not title:
        raise InvalidInput("Paper title is required")
    files = dropbox_client.list_pdf_files()
    match, score = best_file_match(files, title, year, authors, min_score=LENIENT_MIN_SCORE)
    if match is None:
        logger.info(f"No matching PDF found for: {title} (best score: {score})")
        raise NotFound(
            "PDF not found in Dropbox",
            details={"availableFiles": [f.get("name") for f in files][:5]},
        )
    link = dropbox_client.get_temporary_link(match.get("path_lower"))
    logger.info(f"Found matching PDF: {match.get('name')} (score: {score})")
    return {"downloadUrl": link, "filename": match.get("name"), "matchScore": score}


def filename_suggestions(conn) -> Dict[str, Any]:
    files = dropbox_client.list_pdf_files()
    rows = conn.execute(
        "SELECT id, title, authors, year, dropbox_path, dropbox_file_id FROM papers ORDER BY year DESC, title ASC"
    ).fetchall()
    by_path = {(f.get("path_lower") or "").lower(): f for f in files}
    suggestions: List[Dict[str, Any]] = []
    for row in rows:
        authors = [str(a) for a in repository.load_list(row["authors"])]
        current = by_path.get((row["dropbox_path"] or "").lower()) if row["dropbox_path"] else None
        if current is None:
            current, _ = best_file_match(files, row["title"], row["year"], authors, min_score=STRICT_MIN_SCORE)
        names = suggest_filenames(row["title"], row["year"], authors)
        suggestions.append(
            {
                "paperId": row["id"],
                "paperTitle": row["title"],
                "paperYear": row["year"],
                "paperAuthors": authors,
                "currentFile": _file_ref(current) if current else None,
                "suggestedNames": names,
                "recommendedName": names[0],
            }
        )
    matched = {s["currentFile"]["id"] for s in suggestions if s["currentFile"]}
    return {
        "suggestions": suggestions,
        "unmatchedFiles": [_file_ref(f) for f in files if f.get("id") not in matched],
        "totalPapers": len(rows),
        "totalPdfFiles": len(files),
        "conventions": NAMING_CONVENTIONS,
    }


def rename_pdf(conn, old_path: Optional[str], new_name: Optional[str], paper_id: Optional[int] = None) -> Dict[str, Any]:
    if not old_path or not new_name:
        raise InvalidInput("oldPath and newName are required")
    clean_name = new_name if new_name.lower().endswith(".pdf") else f"{new_name}.pdf"
    new_path = f"/{clean_name.lstrip('/')}"
    logger.info(f"Renaming: {old_path} -> {new_path}")
    metadata = dropbox_client.move_file(old_path, new_path)
    if paper_id:
        repository.update_paper(
            conn,
            paper_id,
            {"dropbox_path": metadata.get("path_lower"), "dropbox_file_id": metadata.get("id")},
        )
    return {
        "oldPath": old_path,
        "newPath": metadata.get("path_lower"),
        "message": f"File renamed to {clean_name}",
    }


def link_pdf(conn, paper_id: Optional[int], dropbox_path: Optional[str], dropbox_file_id: Optional[str]) -> None:
    if not paper_id:
        raise InvalidInput("Paper ID is required")
    if not repository.get_paper_row(conn, paper_id):
        raise NotFound("Paper not found")
    owner = repository.find_paper_by_dropbox_id(conn, dropbox_file_id)
    if owner and owner["id"] != paper_id:
        raise Conflict(f"Dropbox file is already linked to paper {owner['id']}")
    repository.update_paper(
        conn,
        paper_id,
        {"dropbox_path": dropbox_path or None, "dropbox_file_id": dropbox_file_id or None},
    )
    logger.info(f"Linked paper {paper_id} to Dropbox file: {dropbox_path}")


def unlinked_papers(conn, limit: int = 20) -> List[Dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT id, title, authors, year, dropbox_path, dropbox_file_id
        FROM papers
        WHERE dropbox_path IS NULL OR dropbox_path = ''
        ORDER BY year DESC, title ASC
        LIMIT ?
        """,
        (limit,),
    ).fetchall()
    return [
        {
            "id": r["id"],
            "title": r["title"],
            "authors": repository.load_list(r["authors"]),
            "year": r["year"],
            "dropboxPath": r["dropbox_path"],
            "dropboxFileId": r["dropbox_file_id"],
        }
        for r in rows
    ]
