from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from .. import repository
from ..errors import PortfolioError
from . import llm_client
from .text import extract_question_keywords

logger = logging.getLogger(__name__)

MAX_RELEVANT = 10
RECENT_FALLBACK = 5


def _recent_papers(conn, limit: int = RECENT_FALLBACK) -> List[Dict[str, Any]]:
    rows = conn.execute(
        "SELECT * FROM papers ORDER BY year DESC, title ASC LIMIT ?", (limit,)
    ).fetchall()
    return [dict(r) for r in rows]


def find_relevant_papers(conn, question: str) -> List[Dict[str, Any]]:
    """Papers matching question keywords, title hits ranked above summary and full-text hits."""
    keywords = extract_question_keywords(question)
    if not keywords:
        return _recent_papers(conn)
    patterns = [f"%{k}%" for k in keywords]

    def any_like(column: str) -> Tuple[str, List[str]]:
        clause = " OR ".join(f"LOWER({column}) LIKE ?" for _ in patterns)
        return f"({clause})", list(patterns)

    title_sql, title_params = any_like("title")
    summary_sql, summary_params = any_like("summary")
    text_sql, text_params = any_like("full_text")
    sql = f"""
        SELECT *,
            CASE
                WHEN {title_sql} THEN 3
                WHEN {summary_sql} THEN 2
                WHEN {text_sql} THEN 1
                ELSE 0
            END AS relevance_score
        FROM papers
        WHERE {title_sql} OR {summary_sql} OR {text_sql}
        ORDER BY relevance_score DESC, year DESC
        LIMIT ?
    """
    params = (title_params + summary_params + text_params) * 2 + [MAX_RELEVANT]
    rows = conn.execute(sql, params).fetchall()
    return [dict(r) for r in rows]


def _fallback_answer(question: str, papers: List[Dict[str, Any]]) -> str:
    if papers:
        top = papers[0]
        return (
            f"Based on the available research, I found {len(papers)} relevant paper(s) that might help "
            f'answer your question about "{question}". The most relevant appears to be "{top.get("title")}" '
            f"({top.get('year')}), which focuses on {top.get('summary') or 'this topic'}."
        )
    return (
        f'I couldn\'t find specific papers in the portfolio that directly address "{question}". '
        "You might want to try rephrasing your question or asking about the main themes in the portfolio."
    )


def _flat_strings(value: Any) -> List[str]:
    out: List[str] = []
    for item in repository.load_list(value):
        parts = item if isinstance(item, list) else [item]
        out.extend(str(p) for p in parts if p is not None and str(p).strip())
    return out


def answer(conn, question: str, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    rows = find_relevant_papers(conn, question)
    papers = [
        {
            "title": r.get("title"),
            "year": r.get("year"),
            "summary": r.get("summary"),
            "authors": _flat_strings(r.get("authors")),
            "keywords": _flat_strings(r.get("keywords")),
        }
        for r in rows
    ]
    fallback = False
    if not llm_client.is_configured():
        text = _fallback_answer(question, rows)
        fallback = True
    else:
        try:
            text = llm_client.answer_question(question, papers, context)
        except PortfolioError as exc:
            logger.warning(f"Q&A model call failed, using fallback answer: {exc.message}")
            text = _fallback_answer(question, rows)
            fallback = True
    return {
        "answer": text,
        "relevantPapers": [{"id": r["id"], "title": r.get("title"), "year": r.get("year")} for r in rows],
        "fallback": fallback,
    }
