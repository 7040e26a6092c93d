from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from .. import repository
from .theme_dictionary import match_buckets

logger = logging.getLogger(__name__)


CONSOLIDATED_THEMES = [
    ("Entrepreneurial Opportunities", "bg-blue-100 text-blue-800"),
    ("Venture Capital", "bg-green-100 text-green-800"),
    ("Corporate Entrepreneurship and Innovation", "bg-purple-100 text-purple-800"),
    ("Entrepreneurial Thinking and Action", "bg-orange-100 text-orange-800"),
    ("Entrepreneurship as Design", "bg-red-100 text-red-800"),
    ("Entrepreneurship Education", "bg-indigo-100 text-indigo-800"),
    ("Philosophy of Entrepreneurship", "bg-yellow-100 text-yellow-800"),
    ("Entrepreneurial Process", "bg-pink-100 text-pink-800"),
]

CATCH_ALL_THEME = "Entrepreneurial Process"

# Checked in order; the first rule with a hit decides the theme.
CONSOLIDATION_RULES = [
    (
        "Entrepreneurial Opportunities",
        ["opportunity", "opportunities", "opportunity recognition", "opportunity identification",
         "opportunity evaluation", "opportunity creation"],
    ),
    (
        "Venture Capital",
        ["venture capital", "vc", "funding", "investment", "financing", "angel", "investor", "capital"],
    ),
    (
        "Corporate Entrepreneurship and Innovation",
        ["corporate entrepreneurship", "intrapreneurship", "corporate innovation", "innovation",
         "spin-off", "spin off", "corporate venture", "r&d"],
    ),
    (
        "Entrepreneurial Thinking and Action",
        ["entrepreneurial thinking", "cognition", "cognitive", "thinking", "decision", "action",
         "behavior", "psychology", "mindset", "mental"],
    ),
    (
        "Entrepreneurship as Design",
        ["design", "venture design", "business design", "design thinking", "design science",
         "artifact", "designing", "design methodology"],
    ),
    (
        "Entrepreneurship Education",
        ["education", "teaching", "learning", "pedagogy", "curriculum", "student", "classroom",
         "academic", "university", "business school"],
    ),
    (
        "Philosophy of Entrepreneurship",
        ["philosophy", "philosophical", "epistemology", "ontology", "theory", "theoretical",
         "conceptual", "framework", "paradigm", "perspective"],
    ),
]

BROAD_TARGET_THEMES = [
    {
        "name": "Venture Capital & Funding",
        "description": "Research on venture capital, funding, investment decisions, and entrepreneurial finance",
        "keywords": ["venture capital", "funding", "investment", "financing", "angel", "investor", "capital", "finance"],
    },
    {
        "name": "Entrepreneurial Cognition",
        "description": "Research on entrepreneurial thinking, decision-making, psychology, and cognitive processes",
        "keywords": ["cognition", "cognitive", "psychology", "thinking", "perception", "bias", "heuristic",
                     "decision", "judgment"],
    },
    {
        "name": "Innovation Management",
        "description": "Research on innovation processes, creativity, product development, and R&D management",
        "keywords": ["innovation", "creativity", "idea", "product development", "r&d", "development", "creative"],
    },
    {
        "name": "New Venture Creation",
        "description": "Research on startup formation, new venture processes, and entrepreneurial ventures",
        "keywords": ["startup", "new venture", "venture creation", "business formation",
                     "entrepreneurial process", "venture design"],
    },
    {
        "name": "Entrepreneurial Networks",
        "description": "Research on entrepreneurial networks, social capital, and business relationships",
        "keywords": ["network", "social capital", "ties", "relationship", "collaboration", "networking"],
    },
    {
        "name": "International Entrepreneurship",
        "description": "Research on cross-border entrepreneurship, global ventures, and international business",
        "keywords": ["international", "cross-border", "global", "emerging market", "developing country"],
    },
    {
        "name": "Technology Entrepreneurship",
        "description": "Research on technology ventures, high-tech startups, and digital entrepreneurship",
        "keywords": ["technology", "high-tech", "biotechnology", "digital", "tech"],
    },
    {
        "name": "Entrepreneurship and Innovation",
        "description": "General entrepreneurship and innovation research not fitting other categories",
        "keywords": ["entrepreneurship", "innovation", "general", "business"],
    },
]


def _bucket_theme(themes: Sequence[Dict[str, Any]], bucket: str) -> Optional[int]:
    lead = bucket.split(" ")[0]
    for theme in themes:
        if bucket in (theme.get("name") or "").lower():
            return theme["id"]
    for theme in themes:
        name = (theme.get("name") or "").lower()
        description = (theme.get("description") or "").lower()
        if lead in name or lead in description:
            return theme["id"]
    return None


def _area_themes(themes: Sequence[Dict[str, Any]], area: Optional[str]) -> List[int]:
    area_lower = (area or "").strip().lower()
    if not area_lower:
        return []
    out = []
    for theme in themes:
        name = (theme.get("name") or "").strip().lower()
        if name and (name == area_lower or area_lower in name or name in area_lower):
            out.append(theme["id"])
    return out


def plan_theme_ids(
    themes: Sequence[Dict[str, Any]],
    research_area: Optional[str],
    keywords: Sequence[str],
    primary_id: Optional[int] = None,
) -> List[int]:
    """Ordered, deduplicated theme ids for a paper.

    ``themes`` must be ordered by id. ``primary_id`` (if given) leads the
    list. Falls back to the first theme when nothing matches; returns an
    empty list only when ``themes`` is empty and no primary is given.
    """
    found: List[int] = [primary_id] if primary_id is not None else []
    for bucket in match_buckets(keywords):
        theme_id = _bucket_theme(themes, bucket)
        if theme_id is not None and theme_id not in found:
            found.append(theme_id)
    for theme_id in _area_themes(themes, research_area):
        if theme_id not in found:
            found.append(theme_id)
    if not found and themes:
        found.append(themes[0]["id"])
    return found


def assign_themes(
    conn,
    paper_id: int,
    research_area: Optional[str],
    keywords: Sequence[str],
    primary_id: Optional[int] = None,
) -> List[int]:
    themes = repository.list_themes(conn)
    planned = plan_theme_ids(themes, research_area, keywords, primary_id)
    if not planned:
        planned = [repository.default_theme_id(conn)]
    assigned = repository.set_paper_themes(conn, paper_id, planned)
    logger.debug(f"Paper {paper_id} assigned themes {assigned}")
    return assigned


def paper_text(paper: Dict[str, Any]) -> str:
    keywords = repository.load_list(paper.get("keywords"))
    words = " ".join(str(k) for k in keywords if not isinstance(k, list))
    return f"{paper.get('title') or ''} {words} {paper.get('summary') or ''}".lower()


def assign_paper_to_theme(paper: Dict[str, Any], themes: Sequence[Dict[str, Any]]) -> Optional[int]:
    """Pick one consolidated theme for ``paper`` by ordered substring rules."""
    by_name = {t["name"]: t["id"] for t in themes}
    text = paper_text(paper)
    for theme_name, fragments in CONSOLIDATION_RULES:
        if theme_name in by_name and any(f in text for f in fragments):
            return by_name[theme_name]
    return by_name.get(CATCH_ALL_THEME)


def consolidate_v2(conn) -> Dict[str, int]:
    """Drop every theme, recreate the fixed taxonomy and reclassify papers."""
    repository.delete_all_themes(conn)
    created = []
    for name, color in CONSOLIDATED_THEMES:
        created.append(repository.create_theme(conn, name, description=f"Research focusing on {name.lower()}", color=color))
    rows = conn.execute("SELECT id, title, keywords, summary FROM papers ORDER BY id").fetchall()
    logger.info(f"Reclassifying {len(rows)} papers into {len(created)} themes")
    updated = 0
    for row in rows:
        paper = dict(row)
        theme_id = assign_paper_to_theme(paper, created)
        repository.set_paper_themes(conn, paper["id"], [theme_id])
        updated += 1
    return {"themeCount": len(created), "updatedPapers": updated}


def _maps_to(theme: Dict[str, Any], target: Dict[str, Any]) -> bool:
    name = (theme.get("name") or "").lower()
    description = (theme.get("description") or "").lower()
    return any(k in name or k in description for k in target["keywords"])


def consolidate_v1(conn) -> Dict[str, int]:
    """Fold existing themes into the broad target themes."""
    existing = repository.list_themes(conn)
    target_ids: Dict[str, int] = {}
    for target in BROAD_TARGET_THEMES:
        theme = repository.find_theme_by_name(conn, target["name"])
        if theme is None:
            theme = repository.create_theme(
                conn, target["name"], description=target["description"], color="bg-blue-100 text-blue-800"
            )
        target_ids[target["name"]] = theme["id"]

    target_set = set(target_ids.values())
    mapping: Dict[int, int] = {}
    for target in BROAD_TARGET_THEMES:
        for old in existing:
            if old["id"] in target_set or old["id"] in mapping:
                continue
            if _maps_to(old, target):
                mapping[old["id"]] = target_ids[target["name"]]
                logger.info(f"Mapping theme {old['name']!r} to {target['name']!r}")
    default_id = target_ids["Entrepreneurship and Innovation"]

    updated = 0
    paper_ids = [r["id"] for r in conn.execute("SELECT id FROM papers ORDER BY id").fetchall()]
    for paper_id in paper_ids:
        current = [t["id"] for t in repository.get_paper_themes(conn, paper_id)]
        remapped = []
        for theme_id in current or [None]:
            if theme_id in target_set:
                new_id = theme_id
            else:
                new_id = mapping.get(theme_id, default_id)
            if new_id not in remapped:
                remapped.append(new_id)
        if remapped != current:
            repository.set_paper_themes(conn, paper_id, remapped)
            updated += 1

    removed = [t["id"] for t in existing if t["id"] not in target_set]
    for theme_id in removed:
        conn.execute("DELETE FROM paper_themes WHERE theme_id = ?", (theme_id,))
        conn.execute("DELETE FROM themes WHERE id = ?", (theme_id,))
    return {
        "originalThemeCount": len(existing),
        "finalThemeCount": len(target_set),
        "updatedPapers": updated,
        "deletedThemes": len(removed),
    }
