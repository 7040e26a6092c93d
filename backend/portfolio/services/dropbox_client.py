from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List

import httpx

from ..errors import Conflict, ServiceNotConfigured, UpstreamServiceError

logger = logging.getLogger(__name__)

API_URL = "https://api.dropboxapi.com/2"
CONTENT_URL = "https://content.dropboxapi.com/2"


def _token() -> str:
    token = os.getenv("DROPBOX_ACCESS_TOKEN", "").strip()
    if not token:
        raise ServiceNotConfigured("Dropbox access token not configured")
    return token


def _root_path() -> str:
    root = os.getenv("DROPBOX_ROOT_PATH", "").strip()
    if root in ("", "/"):
        return ""
    return "/" + root.strip("/")


def _rpc(endpoint: str, payload: Dict[str, Any], timeout: float = 30) -> Dict[str, Any]:
    headers = {"Authorization": f"Bearer {_token()}"}
    try:
        with httpx.Client(timeout=timeout) as client:
            res = client.post(f"{API_URL}/{endpoint}", headers=headers, json=payload)
            res.raise_for_status()
            return res.json()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        logger.error(f"Dropbox {endpoint} failed: {status} {exc.response.text[:200]}")
        if status == 409 and endpoint.startswith("files/move"):
            raise Conflict("A file with that name already exists") from exc
        raise UpstreamServiceError(f"Failed to access Dropbox: {status}") from exc
    except (httpx.HTTPError, ValueError) as exc:
        logger.error(f"Dropbox {endpoint} request failed: {exc}")
        raise UpstreamServiceError(f"Failed to access Dropbox: {exc}") from exc


def _is_pdf(entry: Dict[str, Any]) -> bool:
    return entry.get(".tag") == "file" and (entry.get("name") or "").lower().endswith(".pdf")


def list_pdf_files() -> List[Dict[str, Any]]:
    """Every PDF under the configured root, following pagination."""
    data = _rpc("files/list_folder", {"path": _root_path(), "recursive": True})
    entries = list(data.get("entries", []))
    while data.get("has_more"):
        data = _rpc("files/list_folder/continue", {"cursor": data["cursor"]})
        entries.extend(data.get("entries", []))
    files = [e for e in entries if _is_pdf(e)]
    logger.info(f"Found {len(entries)} Dropbox entries, {len(files)} PDFs")
    return files


def download_file(path: str) -> bytes:
    headers = {
        "Authorization": f"Bearer {_token()}",
        "Dropbox-API-Arg": json.dumps({"path": path}),
    }
    try:
        with httpx.Client(timeout=60) as client:
            res = client.post(f"{CONTENT_URL}/files/download", headers=headers)
            res.raise_for_status()
            return res.content
    except httpx.HTTPError as exc:
        logger.error(f"Dropbox download of {path} failed: {exc}")
        raise UpstreamServiceError(f"Failed to download {path} from Dropbox") from exc


def get_temporary_link(path: str) -> str:
    data = _rpc("files/get_temporary_link", {"path": path})
    return data["link"]


def move_file(from_path: str, to_path: str) -> Dict[str, Any]:
    data = _rpc(
        "files/move_v2",
        {"from_path": from_path, "to_path": to_path, "autorename": False},
    )
    return data.get("metadata", {})
