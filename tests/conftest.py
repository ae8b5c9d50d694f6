from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from formdata.config import MatchKey, Settings, get_settings
from formdata.main import app, get_default_store, get_store
from formdata.models import SubmissionRecord
from formdata.store import upsert

ADMIN_TOKEN = "admin-test-token"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        data_dir=tmp_path / "form-data",
        admin_token=ADMIN_TOKEN,
        secret_key="test-secret",
        timezone="UTC",
        groups=["submissions", "newsletter"],
    )


@pytest.fixture
def client(settings):
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Token": ADMIN_TOKEN}


class MemoryStore:
    """Stand-in for RecordStore that never touches the filesystem."""

    def __init__(self, group: str = "submissions", match_key: MatchKey = MatchKey.EMAIL):
        self.group = group
        self.match_key = match_key
        self.table: Optional[List[SubmissionRecord]] = None
        self.saves = 0

    def exists(self) -> bool:
        return self.table is not None

    def size(self) -> int:
        return 0 if self.table is None else 100 * len(self.table)

    def load(self) -> List[SubmissionRecord]:
        return list(self.table or [])

    def save(self, table) -> None:
        self.table = list(table)
        self.saves += 1

    def clear(self) -> bool:
        existed = self.table is not None
        self.table = None
        return existed

    def submit(self, record):
        table, updated = upsert(self.load(), record, self.match_key)
        self.save(table)
        return table, updated


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def memory_client(settings, memory_store):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_store] = lambda: memory_store
    app.dependency_overrides[get_default_store] = lambda: memory_store
    yield TestClient(app)
    app.dependency_overrides.clear()
