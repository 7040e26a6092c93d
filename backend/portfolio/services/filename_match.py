from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .text import TITLE_STOPWORDS, significant_words, tokenize

logger = logging.getLogger(__name__)

# A match is accepted only when the score is strictly greater.
LENIENT_MIN_SCORE = 2
STRICT_MIN_SCORE = 3

YEAR_RE = re.compile(r"(?<!\d)(?:19|20)\d{2}(?!\d)")


def clean_filename(filename: str) -> str:
    name = (filename or "").strip().lower()
    if name.endswith(".pdf"):
        name = name[:-4]
    return name


def first_author_surname(authors: Optional[Sequence[str]]) -> str:
    if not authors:
        return ""
    first = authors[0] if isinstance(authors, (list, tuple)) else str(authors)
    return str(first).split(",")[0].strip().lower()


def score_filename(
    filename: str,
    title: Optional[str],
    year: Optional[Any],
    authors: Optional[Sequence[str]] = None,
) -> int:
    name = clean_filename(filename)
    clean_title = (title or "").lower()
    year_text = str(year) if year else ""
    surname = first_author_surname(authors)

    has_year = bool(year_text) and year_text in name
    has_author = bool(surname) and surname in name

    score = 0
    if has_year and has_author:
        score += 15
    if year_text and name.startswith(year_text):
        score += 10
    if has_year:
        score += 8
    if has_author:
        score += 5

    matches = sum(1 for word in significant_words(clean_title) if word in name)
    score += matches * 2
    if matches >= 2:
        score += matches * 2

    if matches == 0 and abs(len(name) - len(clean_title)) > len(clean_title) * 2:
        score -= 3

    return max(score, 0)


def best_file_match(
    files: Sequence[Dict[str, Any]],
    title: Optional[str],
    year: Optional[Any],
    authors: Optional[Sequence[str]] = None,
    min_score: int = LENIENT_MIN_SCORE,
) -> Tuple[Optional[Dict[str, Any]], int]:
    """Best scoring file and its score, or ``(None, best_score)``."""
    best = None
    best_score = 0
    for entry in files:
        score = score_filename(entry.get("name") or "", title, year, authors)
        if score > best_score:
            best = entry
            best_score = score
    logger.debug(f"Best filename score for {title!r} ({year}): {best_score}")
    if best is not None and best_score > min_score:
        return best, best_score
    return None, best_score


def suggest_filenames(
    title: Optional[str],
    year: Optional[Any],
    authors: Optional[Sequence[str]] = None,
) -> List[str]:
    first_author = "Unknown"
    if authors:
        first_author = str(authors[0]).split(",")[0].strip() or "Unknown"
    words = [
        w for w in tokenize(title, 2) if w not in TITLE_STOPWORDS
    ][:3]
    title_part = "-".join(w.capitalize() for w in words)
    return [
        f"{first_author}-{year}-{title_part}.pdf",
        f"{year}-{first_author}-{title_part}.pdf",
        f"{year}-{title_part}.pdf",
    ]


def metadata_from_filename(filename: str) -> Dict[str, Any]:
    base = re.sub(r"\.pdf$", "", filename or "", flags=re.IGNORECASE)
    match = YEAR_RE.search(base)
    year = int(match.group(0)) if match else datetime.now().year
    parts = [p for p in re.split(r"[_\-\s]+", base) if p]
    title = " ".join(
        p.capitalize() for p in parts if len(p) > 1 and not re.fullmatch(r"\d{4}", p)
    ) or base
    keywords = [
        p.lower()
        for p in parts
        if len(p) > 3 and not re.fullmatch(r"\d{4}", p) and p.lower() not in {"paper", "book"}
    ]
    return {
        "title": title,
        "authors": ["Unknown Author"],
        "year": year,
        "venue": "Unknown Venue",
        "summary": f"Research paper: {title}. Information extracted from filename.",
        "keywords": keywords or ["research"],
        "research_area": "General Research",
        "analysis_source": "filename",
    }
