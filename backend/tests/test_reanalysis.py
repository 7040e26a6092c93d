from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from portfolio.errors import UpstreamServiceError
from portfolio.services import llm_client


def _add(client: TestClient, title: str) -> int:
    res = client.post(
        "/api/add-paper",
        json={"title": title, "authors": "Dimov, D.", "venue": "JBV", "year": "2020", "keywords": "opportunity"},
    )
    assert res.status_code == 200, res.text
    return res.json()["paper"]["id"]


@pytest.fixture()
def model(monkeypatch: pytest.MonkeyPatch):
    calls = []

    def fake(text, filename):
        calls.append((text, filename))
        return llm_client.ReanalysisResult(
            summary=f"Fresh summary for {filename}",
            research_area="Opportunity Recognition",
        )

    monkeypatch.setattr(llm_client, "is_configured", lambda: True)
    monkeypatch.setattr(llm_client, "analyze_for_reanalysis", fake)
    return calls


def test_reanalyze_pages_with_cursor(client: TestClient, model):
    first = _add(client, "First paper")
    second = _add(client, "Second paper")

    page = client.post("/api/reanalyze-papers", json={"limit": 1}).json()
    assert page["updatedCount"] == 1
    assert page["nextCursor"] == first

    page = client.post("/api/reanalyze-papers", json={"limit": 1, "afterId": page["nextCursor"]}).json()
    assert page["updatedCount"] == 1
    assert page["nextCursor"] == second

    page = client.post("/api/reanalyze-papers", json={"limit": 1, "afterId": page["nextCursor"]}).json()
    assert page["totalProcessed"] == 0
    assert page["nextCursor"] is None


def test_reanalyze_updates_summary_only(client: TestClient, model):
    paper_id = _add(client, "Opportunity paper")
    body = client.post("/api/reanalyze-papers").json()
    assert body["updatedCount"] == 1
    assert body["nextCursor"] is None

    paper = body["data"]["papers"][0]
    assert paper["id"] == paper_id
    assert paper["title"] == "Opportunity paper"
    assert paper["authors"] == ["Dimov, D."]
    assert paper["summary"] == "Fresh summary for Opportunity paper.pdf"

    text, _ = model[0]
    assert text.startswith("Title: Opportunity paper")


def test_reanalyze_records_per_paper_errors(client: TestClient, model, monkeypatch: pytest.MonkeyPatch):
    ok = _add(client, "Fine paper")
    bad = _add(client, "Broken paper")

    def flaky(text, filename):
        if filename.startswith("Broken"):
            raise UpstreamServiceError("Claude API error: 529")
        return llm_client.ReanalysisResult(summary="Fine", research_area="")

    monkeypatch.setattr(llm_client, "analyze_for_reanalysis", flaky)
    body = client.post("/api/reanalyze-papers", json={"limit": 10}).json()
    assert body["updatedCount"] == 1
    assert body["errorCount"] == 1
    assert body["errors"] == [{"paperId": str(bad), "error": "Claude API error: 529"}]
    summaries = {p["id"]: p["summary"] for p in body["data"]["papers"]}
    assert summaries[ok] == "Fine"


def test_reanalyze_single_paper(client: TestClient, model):
    missing = client.post("/api/reanalyze-paper", json={"paperId": 4242})
    assert missing.status_code == 404

    paper_id = _add(client, "Single paper")
    res = client.post("/api/reanalyze-paper", json={"paperId": paper_id})
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["message"] == 'Paper "Single paper" re-analyzed successfully'
    assert body["paper"]["summary"] == "Fresh summary for Single paper.pdf"
    assert len(body["paper"]["themes"]) >= 1
