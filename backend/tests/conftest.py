from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


SERVICE_ENV = ("ANTHROPIC_API_KEY", "DROPBOX_ACCESS_TOKEN", "ADMIN_PASSWORD", "DROPBOX_ROOT_PATH")


def _use_tmp_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    from portfolio import db as db_module

    for name in SERVICE_ENV:
        monkeypatch.delenv(name, raising=False)

    monkeypatch.setattr(db_module, "DATA_DIR", str(tmp_path))
    monkeypatch.setattr(db_module, "DB_PATH", str(tmp_path / "portfolio.db"))
    db_module.ensure_db()
    return db_module


@pytest.fixture()
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _use_tmp_db(tmp_path, monkeypatch)

    from portfolio.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def conn(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    db_module = _use_tmp_db(tmp_path, monkeypatch)
    with db_module.get_conn() as connection:
        yield connection

