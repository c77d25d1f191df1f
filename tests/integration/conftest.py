"""
Integration test fixtures for SchemaHub.

Each test gets a fresh registry database in a temporary directory and a
RegistryServicer wired to real stores and a real diff engine.
"""

import os
import tempfile

import pytest

from hub.schemahub_server.api.servicer import RegistryServicer
from hub.schemahub_server.schema.engine import DiffEngine
from hub.schemahub_server.store import (
    HistoryLog,
    RegistryDatabase,
    SchemaStore,
    TagIndex,
    UsageStore,
)

API_KEY = "test-api-key"


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def api_key():
    return API_KEY


@pytest.fixture
def database(data_dir):
    db = RegistryDatabase(os.path.join(data_dir, "registry.db"), wal_mode=False)
    db.initialize()
    return db


@pytest.fixture
def servicer(database):
    """Servicer over real SQLite-backed stores."""
    return RegistryServicer(
        database=database,
        schema_store=SchemaStore(database),
        tag_index=TagIndex(database),
        history_log=HistoryLog(database),
        usage_store=UsageStore(database),
        engine=DiffEngine(cache_size=16, timeout_seconds=5.0),
        api_keys=[API_KEY],
    )
