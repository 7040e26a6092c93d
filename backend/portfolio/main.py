from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from . import repository
from .auth import check_admin_password
from .db import get_conn
from .errors import InvalidInput, NotFound, PortfolioError
from .schemas import (
    AdminAuthRequest,
    LinkPdfRequest,
    PaperCreate,
    PaperIdRequest,
    PaperThemeRemove,
    PaperThemesUpdate,
    PaperUpdateRequest,
    PdfLinkRequest,
    ReanalyzeRequest,
    RenamePdfRequest,
    ResearchQuestion,
)
from .services import classifier, csv_import, pdf_library, reanalysis, research_qa, sync
from .services.text import dedupe_keep_order, split_delimited

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Research Portfolio API")


def _cors_origins() -> List[str]:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PortfolioError)
def handle_portfolio_error(request: Request, exc: PortfolioError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message, **exc.details},
    )


@app.exception_handler(HTTPException)
def handle_http_error(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "body"
    message = f"Invalid request: {field}: {first.get('msg', 'invalid value')}"
    return JSONResponse(status_code=400, content={"success": False, "error": message})


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception(f"Unhandled error in {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"success": False, "error": f"Internal server error: {exc}"})


@app.on_event("startup")
def prepare_database():
    with get_conn() as conn:
        count = conn.execute("SELECT COUNT(*) AS c FROM papers").fetchone()["c"]
    logger.info(f"Database ready with {count} papers")


@app.get("/api/health")
def health():
    return {"status": "ok"}


# Papers


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    return split_delimited(str(value))


def _parse_year(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        raise InvalidInput(f"Invalid year: {value}")


@app.get("/api/papers")
def list_papers():
    with get_conn() as conn:
        data = repository.fetch_dataset(conn)
    return {"success": True, **data}


@app.get("/api/stats")
def stats():
    with get_conn() as conn:
        papers = conn.execute("SELECT COUNT(*) AS c FROM papers").fetchone()["c"]
        themes = conn.execute("SELECT COUNT(*) AS c FROM themes").fetchone()["c"]
    return {"success": True, "stats": {"papers": papers, "themes": themes}}


@app.post("/api/add-paper")
def add_paper(payload: PaperCreate):
    title = (payload.title or "").strip()
    authors = _as_list(payload.authors)
    venue = (payload.venue or "").strip()
    if not title or not authors or not venue:
        raise InvalidInput("Title, authors, and venue are required fields")
    keywords = dedupe_keep_order(_as_list(payload.keywords), ignore_case=False)
    abstract = (payload.abstract or "").strip()
    try:
        year = _parse_year(payload.year) or datetime.now().year
    except InvalidInput:
        year = datetime.now().year

    logger.info(f"Adding new paper: {title}")
    with get_conn() as conn:
        paper_id = repository.insert_paper(
            conn,
            {
                "title": title,
                "authors": authors,
                "year": year,
                "venue": venue,
                "summary": abstract or "No abstract provided",
                "keywords": keywords,
                "full_text": abstract or None,
                "doi": payload.doi or None,
                "link": payload.link or None,
                "volume": payload.volume or None,
                "issue": payload.issue or None,
                "page_start": payload.page_start or None,
                "page_end": payload.page_end or None,
                "type": payload.type,
                "analysis_source": "manual",
            },
        )
        classifier.assign_themes(conn, paper_id, None, keywords)
        paper = repository.fetch_paper(conn, paper_id)
    return {"success": True, "message": "Paper added successfully", "paper": paper}


UPDATE_FIELD_MAP = {
    "title": "title",
    "authors": "authors",
    "year": "year",
    "venue": "venue",
    "abstract": "full_text",
    "keywords": "keywords",
    "doi": "doi",
    "link": "link",
    "volume": "volume",
    "issue": "issue",
    "pageStart": "page_start",
    "pageEnd": "page_end",
    "type": "type",
}

NULLABLE_UPDATE_FIELDS = {"doi", "link", "volume", "issue", "page_start", "page_end"}


def _paper_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in updates.items():
        column = UPDATE_FIELD_MAP.get(key)
        if column is None:
            continue
        if column == "authors":
            value = _as_list(value)
        elif column == "keywords":
            value = dedupe_keep_order(_as_list(value), ignore_case=False)
        elif column == "year":
            value = _parse_year(value)
        elif column in NULLABLE_UPDATE_FIELDS:
            value = value or None
        out[column] = value
    return out


@app.post("/api/update-paper")
def update_paper(payload: PaperUpdateRequest):
    if not payload.paper_id:
        raise InvalidInput("Paper ID is required")
    fields = _paper_updates(payload.updates or {})
    if not fields:
        raise InvalidInput("No valid fields to update")
    logger.info(f"Updating paper {payload.paper_id}: {sorted(fields)}")
    with get_conn() as conn:
        if not repository.get_paper_row(conn, payload.paper_id):
            raise NotFound("Paper not found")
        repository.update_paper(conn, payload.paper_id, fields)
        paper = repository.fetch_paper(conn, payload.paper_id)
    return {"success": True, "message": "Paper updated successfully", "paper": paper}


@app.post("/api/fix-arrays")
def fix_arrays():
    with get_conn() as conn:
        fixed = repository.flatten_nested_lists(conn)
    logger.info(f"Fixed {fixed} papers with double-nested arrays")
    return {"success": True, "message": f"Fixed {fixed} papers with double-nested arrays", "fixedCount": fixed}


# Paper themes


@app.get("/api/paper-themes")
def get_paper_themes(paperId: Optional[int] = None):
    if not paperId:
        raise InvalidInput("Paper ID is required")
    with get_conn() as conn:
        themes = repository.get_paper_themes(conn, paperId)
    return {"success": True, "themes": themes}


@app.post("/api/paper-themes")
def set_paper_themes(payload: PaperThemesUpdate):
    if not payload.paper_id:
        raise InvalidInput("Paper ID and theme IDs array are required")
    with get_conn() as conn:
        if not repository.get_paper_row(conn, payload.paper_id):
            raise NotFound("Paper not found")
        known = {t["id"] for t in repository.list_themes(conn)}
        unknown = [tid for tid in payload.theme_ids if tid not in known]
        if unknown:
            raise InvalidInput(f"Unknown theme ids: {unknown}")
        assigned = repository.set_paper_themes(conn, payload.paper_id, payload.theme_ids)
    logger.info(f"Set themes {assigned} on paper {payload.paper_id}")
    return {"success": True, "message": f"Updated themes for paper {payload.paper_id}", "themeIds": assigned}


@app.delete("/api/paper-themes")
def remove_paper_theme(payload: PaperThemeRemove):
    if not payload.paper_id or not payload.theme_id:
        raise InvalidInput("Paper ID and theme ID are required")
    with get_conn() as conn:
        removed = repository.remove_paper_theme(conn, payload.paper_id, payload.theme_id)
    if not removed:
        raise NotFound("Theme is not assigned to this paper")
    return {"success": True, "message": f"Removed theme {payload.theme_id} from paper {payload.paper_id}"}


# Dropbox sync and PDFs


@app.post("/api/sync-dropbox")
def sync_dropbox():
    with get_conn() as conn:
        report = sync.sync_dropbox(conn)
        data = repository.fetch_dataset(conn)
    summary = sync.sync_summary(report)
    return {"success": True, "newPapers": summary["newPapers"], "summary": summary, "data": data}


@app.get("/api/check-new-papers")
def check_new_papers():
    with get_conn() as conn:
        result = sync.check_new_papers(conn)
    return {"success": True, **result}


@app.post("/api/get-pdf-link")
def get_pdf_link(payload: PdfLinkRequest):
    result = pdf_library.find_pdf_link(
        payload.paper_title,
        payload.paper_year,
        _as_list(payload.paper_authors),
    )
    return {"success": True, **result}


@app.get("/api/suggest-filenames")
def suggest_filenames():
    with get_conn() as conn:
        result = pdf_library.filename_suggestions(conn)
    return {"success": True, **result}


@app.post("/api/rename-pdf")
def rename_pdf(payload: RenamePdfRequest):
    with get_conn() as conn:
        result = pdf_library.rename_pdf(conn, payload.old_path, payload.new_name, payload.paper_id)
    return {"success": True, **result}


@app.get("/api/link-pdf")
def list_unlinked_papers():
    with get_conn() as conn:
        papers = pdf_library.unlinked_papers(conn)
    return {"success": True, "papers": papers}


@app.post("/api/link-pdf")
def link_pdf(payload: LinkPdfRequest):
    with get_conn() as conn:
        pdf_library.link_pdf(conn, payload.paper_id, payload.dropbox_path, payload.dropbox_file_id)
    return {"success": True, "message": "Paper linked to PDF successfully"}


# Classification


@app.post("/api/reanalyze-papers")
def reanalyze_papers(payload: Optional[ReanalyzeRequest] = None):
    payload = payload or ReanalyzeRequest()
    with get_conn() as conn:
        report, next_cursor = reanalysis.reanalyze_papers(conn, payload.limit, payload.after_id)
        data = repository.fetch_dataset(conn)
    return {
        "success": True,
        "updatedCount": report.count("updated"),
        "errorCount": report.count("error"),
        "totalProcessed": report.total,
        "errors": report.error_details("paperId"),
        "nextCursor": next_cursor,
        "data": data,
    }


@app.post("/api/reanalyze-paper")
def reanalyze_paper(payload: PaperIdRequest):
    if not payload.paper_id:
        raise InvalidInput("Paper ID is required")
    with get_conn() as conn:
        row = reanalysis.reanalyze_paper(conn, payload.paper_id)
        paper = repository.fetch_paper(conn, payload.paper_id)
    return {
        "success": True,
        "message": f'Paper "{row.get("title")}" re-analyzed successfully',
        "paper": paper,
    }


@app.post("/api/consolidate-themes-v2")
def consolidate_themes_v2():
    with get_conn() as conn:
        result = classifier.consolidate_v2(conn)
        data = repository.fetch_dataset(conn)
    return {
        "success": True,
        "message": f"Consolidated into {result['themeCount']} themes",
        **result,
        "data": data,
    }


@app.post("/api/consolidate-themes")
def consolidate_themes():
    with get_conn() as conn:
        result = classifier.consolidate_v1(conn)
        data = repository.fetch_dataset(conn)
    return {
        "success": True,
        "message": f"Consolidated {result['originalThemeCount']} themes into {result['finalThemeCount']}",
        **result,
        "data": data,
    }


# Import, auth and Q&A


@app.post("/api/import-csv")
def import_csv(csvFile: Optional[UploadFile] = File(None), clearExisting: Optional[str] = Form(None)):
    if csvFile is None:
        raise InvalidInput("No CSV file provided")
    content = csvFile.file.read()
    clear = (clearExisting or "").strip().lower() == "true"
    with get_conn() as conn:
        report = csv_import.import_csv(conn, content, clear_existing=clear)
        data = repository.fetch_dataset(conn)
    return {
        "success": True,
        "importCount": report.count("added"),
        "errorCount": report.count("error"),
        "skippedCount": report.count("skipped"),
        "errors": report.error_details("row", limit=5),
        "data": data,
    }


@app.post("/api/admin-auth")
def admin_auth(payload: AdminAuthRequest):
    check_admin_password(payload.password)
    return {"success": True}


@app.post("/api/research-qa")
def research_question(payload: ResearchQuestion):
    question = (payload.question or "").strip()
    if not question:
        raise InvalidInput("Question is required")
    with get_conn() as conn:
        result = research_qa.answer(conn, question, payload.context)
    return {"success": True, **result}
