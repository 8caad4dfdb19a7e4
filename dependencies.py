"""
Shared dependencies for FastAPI routes.
"""

from sqlalchemy.orm import Session

from config import get_db_instance
from api.session_store import SessionStore, get_session_store


def get_db() -> Session:
    """Get database session dependency for FastAPI routes."""
    db = get_db_instance()
    session = db.get_session()
    try:
        yield session
    finally:
        session.close()


def get_sessions() -> SessionStore:
    """Search session store dependency."""
    return get_session_store()
