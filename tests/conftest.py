import os
import sys
import tempfile
from pathlib import Path

import pytest

# The engine is built at import time, so the DB must be chosen before any backend import
_TMPDIR = tempfile.TemporaryDirectory()
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_TMPDIR.name) / 'test.db'}"
for _var in ("API_TOKEN", "API_ROLE", "OIDC_HS256_SECRET", "OIDC_ISSUER", "OIDC_AUDIENCE"):
    os.environ.pop(_var, None)

repo_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(repo_root))


@pytest.fixture(scope="session")
def client():
    from fastapi.testclient import TestClient
    from backend.app.main import app  # import after env is set

    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # Auth reads its env per request, so each test starts in dev mode
    for var in ("API_TOKEN", "API_ROLE", "OIDC_HS256_SECRET", "OIDC_ISSUER", "OIDC_AUDIENCE"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture()
def clean_db(client):
    from backend.app.db import engine, metadata

    with engine.begin() as conn:
        for table in reversed(metadata.sorted_tables):
            conn.execute(table.delete())
    yield
