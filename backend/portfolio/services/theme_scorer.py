from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from .. import repository
from ..db import DEFAULT_THEME_NAME
from .theme_dictionary import broad_theme_for, first_keyword_theme, is_generic_area

logger = logging.getLogger(__name__)

# A best score must be strictly greater than the threshold to be accepted.
LENIENT_THRESHOLD = 2.0
STRICT_THRESHOLD = 4.0


class MatchMode(str, Enum):
    LENIENT = "lenient"
    STRICT = "strict"

    @property
    def threshold(self) -> float:
        return STRICT_THRESHOLD if self is MatchMode.STRICT else LENIENT_THRESHOLD


def score_theme(theme: Dict[str, Any], area: Optional[str], keywords: Iterable[str]) -> float:
    name = (theme.get("name") or "").lower()
    description = (theme.get("description") or "").lower()
    area_lower = (area or "").strip().lower()
    score = 0.0
    if area_lower:
        if name == area_lower:
            score += 5
        if area_lower in name:
            score += 3
        if area_lower in description:
            score += 2
    for keyword in keywords:
        if not isinstance(keyword, str):
            continue
        kw = keyword.strip().lower()
        if not kw:
            continue
        if kw in name:
            score += 1
        if kw in description:
            score += 0.5
    return score


def best_theme(
    themes: Sequence[Dict[str, Any]],
    area: Optional[str],
    keywords: Iterable[str],
) -> Tuple[Optional[Dict[str, Any]], float]:
    """Highest scoring theme; the earliest theme wins ties."""
    keywords = list(keywords)
    best: Optional[Dict[str, Any]] = None
    best_score = 0.0
    for theme in themes:
        score = score_theme(theme, area, keywords)
        if score > best_score:
            best = theme
            best_score = score
    return best, best_score


def refine_area(
    area: Optional[str],
    keywords: Sequence[str],
    author_keywords: Sequence[str] = (),
) -> str:
    """Swap a generic research area for a keyword-derived theme name."""
    if not is_generic_area(area):
        return area.strip()
    refined = first_keyword_theme(author_keywords) or first_keyword_theme(keywords)
    if refined:
        logger.debug(f"Refined generic area {area!r} to {refined!r}")
        return refined
    return (area or "").strip()


def resolve_theme(
    conn,
    area: Optional[str],
    keywords: Sequence[str],
    mode: MatchMode = MatchMode.LENIENT,
    allow_create: bool = True,
    author_keywords: Sequence[str] = (),
) -> int:
    keywords = [k for k in keywords if isinstance(k, str)]
    theme_area = refine_area(area, keywords, author_keywords)
    themes = repository.list_themes(conn)

    match, score = best_theme(themes, theme_area, keywords)
    if match is not None and score > mode.threshold:
        return match["id"]

    if mode is MatchMode.STRICT:
        broad = broad_theme_for(theme_area, keywords)
        if broad:
            existing = repository.find_theme_by_name(conn, broad)
            if existing:
                return existing["id"]
            if allow_create:
                return repository.create_theme(conn, broad, keywords=keywords)["id"]
    elif allow_create and theme_area and not is_generic_area(theme_area):
        existing = repository.find_theme_by_name(conn, theme_area)
        if existing:
            return existing["id"]
        return repository.create_theme(conn, theme_area, keywords=keywords)["id"]

    if mode is MatchMode.STRICT:
        general = repository.find_theme_by_name(conn, DEFAULT_THEME_NAME)
        if general:
            return general["id"]
    return repository.default_theme_id(conn)
