"""Pytest fixtures for backend tests."""

import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Keep main.py from creating a listings.db file next to the sources
os.environ.setdefault("DB_PATH", ":memory:")

# Ensure project root is on path
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from config import set_db_instance
from database import Database
from models import Position, PropertyRecord
from api.services.map_engine import CommandBufferMapEngine
from api.session_store import get_session_store


@pytest.fixture
def test_db():
    """Create an in-memory SQLite database for tests."""
    db = Database(db_path=":memory:")
    db.create_tables()
    set_db_instance(db)
    yield db
    db.close()


@pytest.fixture
def app(test_db):
    """Create FastAPI app with test database. Patch set_db_instance so main does not overwrite."""
    with patch("config.set_db_instance", lambda x: None):
        from main import app as fastapi_app
    return fastapi_app


@pytest.fixture
def client(app):
    """Test client for the FastAPI app; search sessions are dropped afterwards."""
    from fastapi.testclient import TestClient

    yield TestClient(app)
    get_session_store().clear()


@pytest.fixture
def engine():
    """Command-buffer map engine."""
    return CommandBufferMapEngine()


@pytest.fixture
def lagos_records():
    """Two Lagos listings and one New York listing with mixed price encodings."""
    return [
        PropertyRecord(
            id=1,
            raw_price="₦45,000,000",
            coordinates=Position(lat=6.43, lng=3.42),
            city="Lagos",
        ),
        PropertyRecord(
            id=2,
            raw_price="2.5 million",
            coordinates=Position(lat=6.47, lng=3.59),
            city="Lagos",
        ),
        PropertyRecord(
            id=3,
            raw_price=999999999999,
            coordinates=Position(lat=40.7, lng=-74.0),
            city="NYC",
        ),
    ]
