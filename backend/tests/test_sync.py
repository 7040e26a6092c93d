from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from portfolio.errors import MalformedModelOutput
from portfolio.services import dropbox_client, llm_client, pdf_extract


FILES = [
    {
        ".tag": "file",
        "id": "id:dimov2020",
        "name": "Dimov-2020-Opportunity.pdf",
        "path_lower": "/papers/dimov-2020-opportunity.pdf",
    },
    {
        ".tag": "file",
        "id": "id:smith2019",
        "name": "Smith-2019-Funding.pdf",
        "path_lower": "/papers/smith-2019-funding.pdf",
    },
]


def _fake_dropbox(monkeypatch: pytest.MonkeyPatch, files=FILES, text_suffix=" body text"):
    monkeypatch.setenv("DROPBOX_ACCESS_TOKEN", "test-token")
    monkeypatch.setattr(dropbox_client, "list_pdf_files", lambda: list(files))
    monkeypatch.setattr(dropbox_client, "download_file", lambda path: path.encode("utf-8"))
    monkeypatch.setattr(
        pdf_extract,
        "extract_text_from_bytes",
        lambda data: data.decode("utf-8") + text_suffix,
    )


def _fake_analysis(text: str, filename: str) -> llm_client.PaperAnalysis:
    return llm_client.PaperAnalysis(
        title=f"Analysis of {filename}",
        authors=["Dimov, D."],
        year=2020,
        venue="Journal of Business Venturing",
        summary="A study of venture capital decisions.",
        keywords=["venture capital", "decision making"],
        research_area="Venture Capital Decision Making",
    )


def _with_model(monkeypatch: pytest.MonkeyPatch, analyze=_fake_analysis):
    monkeypatch.setattr(llm_client, "is_configured", lambda: True)
    monkeypatch.setattr(llm_client, "analyze_paper_text", analyze)


def test_sync_imports_new_files_once(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    _fake_dropbox(monkeypatch)
    _with_model(monkeypatch)

    first = client.post("/api/sync-dropbox")
    assert first.status_code == 200, first.text
    body = first.json()
    assert body["newPapers"] == 2
    assert body["summary"]["totalPdfFiles"] == 2
    assert body["summary"]["errorFiles"] == 0
    papers = body["data"]["papers"]
    assert {p["dropboxFileId"] for p in papers} == {"id:dimov2020", "id:smith2019"}
    assert all(p["analysisSource"] == "model" for p in papers)
    assert all(p["themeName"] == "Venture Capital Decision Making" for p in papers)
    assert len(body["data"]["themes"]) == 1

    second = client.post("/api/sync-dropbox").json()
    assert second["newPapers"] == 0
    assert second["summary"]["skippedFiles"] == 2
    assert sorted(second["summary"]["skippedFileNames"]) == sorted(f["name"] for f in FILES)
    assert len(second["data"]["papers"]) == 2


def test_sync_reports_model_failures_without_fabricating(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    _fake_dropbox(monkeypatch)

    def flaky(text, filename):
        if filename.startswith("Smith"):
            raise MalformedModelOutput("Model returned malformed JSON", raw_text="{oops")
        return _fake_analysis(text, filename)

    _with_model(monkeypatch, flaky)
    body = client.post("/api/sync-dropbox").json()
    assert body["newPapers"] == 1
    assert body["summary"]["errorFiles"] == 1
    assert body["summary"]["errorDetails"] == [
        {"name": "Smith-2019-Funding.pdf", "error": "Model returned malformed JSON"}
    ]
    assert [p["dropboxFileId"] for p in body["data"]["papers"]] == ["id:dimov2020"]

    _with_model(monkeypatch)
    retry = client.post("/api/sync-dropbox").json()
    assert retry["newPapers"] == 1
    assert retry["summary"]["skippedFiles"] == 1


def test_sync_empty_text_is_an_error(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    _fake_dropbox(monkeypatch, files=FILES[:1])
    monkeypatch.setattr(pdf_extract, "extract_text_from_bytes", lambda data: "   ")
    _with_model(monkeypatch)
    body = client.post("/api/sync-dropbox").json()
    assert body["newPapers"] == 0
    assert body["summary"]["errorDetails"][0]["error"] == "No text extracted"


def test_sync_without_model_key_uses_filename(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    _fake_dropbox(monkeypatch, files=FILES[:1])
    body = client.post("/api/sync-dropbox").json()
    assert body["newPapers"] == 1
    paper = body["data"]["papers"][0]
    assert paper["analysisSource"] == "filename"
    assert paper["year"] == 2020
    assert paper["title"] == "Dimov Opportunity"
    assert len(paper["themes"]) >= 1


def test_check_new_papers(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    _fake_dropbox(monkeypatch, files=FILES[:1])
    _with_model(monkeypatch)
    client.post("/api/sync-dropbox")

    monkeypatch.setattr(dropbox_client, "list_pdf_files", lambda: list(FILES))
    body = client.get("/api/check-new-papers").json()
    assert body["success"] is True
    assert body["totalDropboxFiles"] == 2
    assert body["existingInDatabase"] == 1
    assert body["newFiles"] == 1
    assert body["newFileNames"] == ["Smith-2019-Funding.pdf"]
    assert body["needsSync"] is True


def test_full_text_is_truncated(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    _fake_dropbox(monkeypatch, files=FILES[:1], text_suffix="x" * 20000)
    _with_model(monkeypatch)
    client.post("/api/sync-dropbox")

    from portfolio import db

    with db.get_conn() as conn:
        stored = conn.execute("SELECT full_text FROM papers").fetchone()["full_text"]
    assert len(stored) == pdf_extract.FULL_TEXT_LIMIT
