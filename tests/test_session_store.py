"""Tests for the search session store."""

from unittest.mock import patch

from api.services.map_engine import CommandBufferMapEngine
from api.services.viewport_sync import ViewportSyncController
from api.session_store import SessionStore


def _create(store, records):
    engine = CommandBufferMapEngine()
    return store.create(ViewportSyncController(records, engine), engine)


def test_create_and_get(lagos_records):
    store = SessionStore(ttl=60)
    session = _create(store, lagos_records)

    assert store.get(session.session_id) is session
    assert store.get("missing") is None


def test_expired_session_is_dropped_and_markers_released(lagos_records):
    """Idle sessions expire on access and release their map markers."""
    store = SessionStore(ttl=60)
    session = _create(store, lagos_records)
    assert session.engine.live_markers

    with patch("api.session_store.time.time", return_value=session.last_access + 61):
        assert store.get(session.session_id) is None

    assert session.engine.live_markers == {}
    assert store.stats()["total_sessions"] == 0


def test_evict_expired_and_stats(lagos_records):
    store = SessionStore(ttl=60)
    old = _create(store, lagos_records)
    fresh = _create(store, lagos_records)
    old.last_access -= 120

    assert store.stats() == {
        "total_sessions": 2,
        "active_sessions": 1,
        "expired_sessions": 1,
        "ttl_seconds": 60,
    }
    assert store.evict_expired() == 1
    assert store.get(fresh.session_id) is fresh


def test_delete(lagos_records):
    store = SessionStore(ttl=60)
    session = _create(store, lagos_records)

    assert store.delete(session.session_id) is True
    assert store.delete(session.session_id) is False
