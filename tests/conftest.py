"""Shared fixtures: temp-dir storage and a wired-up API."""

import pytest
from fastapi.testclient import TestClient

from dream_api.core.config import Settings
from dream_api.core.dream_analyzer import DreamAnalyzer
from dream_api.main import app, get_analyzer
from dream_journal.store import EntryStore, FileStorage

from .fakes import FakeLLM


@pytest.fixture
def storage(tmp_path):
    return FileStorage(tmp_path / "storage")


@pytest.fixture
def store(storage):
    return EntryStore(storage)


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def api(storage, llm):
    """TestClient with a temp store and a fake completion provider."""
    app.state.store = EntryStore(storage)
    app.state.store.load()
    app.dependency_overrides[get_analyzer] = lambda: DreamAnalyzer(Settings(), llm=llm)
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.store = None
