from __future__ import annotations

from portfolio import repository
from portfolio.services.classifier import (
    CATCH_ALL_THEME,
    CONSOLIDATED_THEMES,
    assign_paper_to_theme,
    assign_themes,
    consolidate_v1,
    consolidate_v2,
    plan_theme_ids,
)

THEMES = [
    {"id": 1, "name": "Entrepreneurship and Innovation", "description": "general"},
    {"id": 2, "name": "Venture Capital", "description": "funding research"},
    {"id": 3, "name": "Opportunity Recognition", "description": ""},
]


def test_plan_theme_ids():
    assert plan_theme_ids(THEMES, None, ["venture capital"]) == [2]
    assert plan_theme_ids(THEMES, "Opportunity Recognition", []) == [3]
    assert plan_theme_ids(THEMES, "", []) == [1]
    assert plan_theme_ids([], "Anything", ["venture capital"]) == []
    assert plan_theme_ids(THEMES, "Opportunity Recognition", ["venture capital"]) == [2, 3]
    assert plan_theme_ids(THEMES, None, [], primary_id=3) == [3]
    assert plan_theme_ids(THEMES, "Opportunity Recognition", [], primary_id=3) == [3]


def _paper(conn, title, keywords=(), summary=""):
    return repository.insert_paper(
        conn,
        {"title": title, "authors": ["A"], "year": 2020, "keywords": list(keywords), "summary": summary},
    )


def test_assign_themes_without_keywords_gives_one_theme(conn):
    paper_id = _paper(conn, "Quiet paper")
    assigned = assign_themes(conn, paper_id, None, [])
    assert len(assigned) == 1
    assert [t["id"] for t in repository.get_paper_themes(conn, paper_id)] == assigned


def test_assign_paper_to_theme():
    themes = [{"id": i, "name": name} for i, (name, _) in enumerate(CONSOLIDATED_THEMES, start=1)]
    by_name = {t["name"]: t["id"] for t in themes}

    vc = assign_paper_to_theme({"title": "Angel syndicates", "keywords": '["venture capital"]'}, themes)
    assert vc == by_name["Venture Capital"]

    first_rule_wins = assign_paper_to_theme({"title": "Funding opportunity", "keywords": "[]"}, themes)
    assert first_rule_wins == by_name["Entrepreneurial Opportunities"]

    fallback = assign_paper_to_theme({"title": "Untitled", "keywords": None, "summary": ""}, themes)
    assert fallback == by_name[CATCH_ALL_THEME]


def test_consolidate_v2(conn):
    repository.create_theme(conn, "Old theme")
    paper_id = _paper(conn, "Teaching entrepreneurship")
    result = consolidate_v2(conn)
    assert result == {"themeCount": 8, "updatedPapers": 1}
    assert [t["name"] for t in repository.list_themes(conn)] == [name for name, _ in CONSOLIDATED_THEMES]
    assert [t["name"] for t in repository.get_paper_themes(conn, paper_id)] == ["Entrepreneurship Education"]


def test_consolidate_v1_folds_into_broad_themes(conn):
    old = repository.create_theme(conn, "Angel investment studies")
    themed = _paper(conn, "Angels")
    repository.set_paper_themes(conn, themed, [old["id"]])
    bare = _paper(conn, "No themes yet")

    result = consolidate_v1(conn)
    assert result == {
        "originalThemeCount": 1,
        "finalThemeCount": 8,
        "updatedPapers": 2,
        "deletedThemes": 1,
    }
    assert repository.find_theme_by_name(conn, "Angel investment studies") is None
    assert [t["name"] for t in repository.get_paper_themes(conn, themed)] == ["Venture Capital & Funding"]
    assert [t["name"] for t in repository.get_paper_themes(conn, bare)] == ["Entrepreneurship and Innovation"]
