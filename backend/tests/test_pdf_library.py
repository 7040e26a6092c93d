from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from portfolio.services import dropbox_client

TITLE = "Opportunity Recognition as Act and Artifact"
FILES = [
    {".tag": "file", "id": "id:dimov", "name": "Dimov-2020-Opportunity.pdf", "path_lower": "/dimov-2020-opportunity.pdf"},
    {".tag": "file", "id": "id:other", "name": "unrelated.pdf", "path_lower": "/unrelated.pdf"},
]


@pytest.fixture()
def dropbox(monkeypatch: pytest.MonkeyPatch):
    moves = []

    def move(from_path, to_path):
        moves.append((from_path, to_path))
        return {"path_lower": to_path.lower(), "id": "id:renamed"}

    monkeypatch.setattr(dropbox_client, "list_pdf_files", lambda: list(FILES))
    monkeypatch.setattr(dropbox_client, "get_temporary_link", lambda path: f"https://dl.example{path}")
    monkeypatch.setattr(dropbox_client, "move_file", move)
    return moves


def _add(client: TestClient) -> int:
    res = client.post(
        "/api/add-paper",
        json={"title": TITLE, "authors": "Dimov, D.", "venue": "JBV", "year": "2020"},
    )
    return res.json()["paper"]["id"]


def test_get_pdf_link(client: TestClient, dropbox):
    res = client.post(
        "/api/get-pdf-link",
        json={"paperTitle": TITLE, "paperYear": 2020, "paperAuthors": ["Dimov, D."]},
    )
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["filename"] == "Dimov-2020-Opportunity.pdf"
    assert body["downloadUrl"] == "https://dl.example/dimov-2020-opportunity.pdf"
    assert body["matchScore"] > 2


def test_get_pdf_link_not_found(client: TestClient, dropbox):
    res = client.post("/api/get-pdf-link", json={"paperTitle": "Zebra", "paperYear": 1999})
    assert res.status_code == 404
    body = res.json()
    assert body["error"] == "PDF not found in Dropbox"
    assert body["availableFiles"] == ["Dimov-2020-Opportunity.pdf", "unrelated.pdf"]

    missing = client.post("/api/get-pdf-link", json={"paperYear": 1999})
    assert missing.status_code == 400


def test_suggest_filenames(client: TestClient, dropbox):
    paper_id = _add(client)
    body = client.get("/api/suggest-filenames").json()
    assert body["totalPapers"] == 1
    assert body["totalPdfFiles"] == 2
    suggestion = body["suggestions"][0]
    assert suggestion["paperId"] == paper_id
    assert suggestion["currentFile"]["name"] == "Dimov-2020-Opportunity.pdf"
    assert suggestion["recommendedName"] == "Dimov-2020-Opportunity-Recognition-Act.pdf"
    assert [f["name"] for f in body["unmatchedFiles"]] == ["unrelated.pdf"]
    assert len(body["conventions"]) == 3


def test_rename_pdf_updates_linkage(client: TestClient, dropbox):
    paper_id = _add(client)
    res = client.post(
        "/api/rename-pdf",
        json={"oldPath": "/dimov-2020-opportunity.pdf", "newName": "Dimov-2020-Act", "paperId": paper_id},
    )
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["newPath"] == "/dimov-2020-act.pdf"
    assert body["message"] == "File renamed to Dimov-2020-Act.pdf"
    assert dropbox == [("/dimov-2020-opportunity.pdf", "/Dimov-2020-Act.pdf")]

    paper = client.get("/api/papers").json()["papers"][0]
    assert paper["dropboxPath"] == "/dimov-2020-act.pdf"
    assert paper["dropboxFileId"] == "id:renamed"

    missing = client.post("/api/rename-pdf", json={"oldPath": "/x.pdf"})
    assert missing.status_code == 400
