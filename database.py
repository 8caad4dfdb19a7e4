"""
Database engine setup and the listing repository.

Listings are the search engine's data source: sessions load them once and
refresh on demand, so the repository is read-mostly.
"""

import logging
import sqlite3
from typing import Iterable, List, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from models import Base, ListingModel, PropertyRecord
from config import get_database_url, get_db_path, is_production

logger = logging.getLogger(__name__)


def _postgres_engine(url: str) -> Engine:
    return create_engine(url, echo=False, pool_pre_ping=True, pool_size=5, max_overflow=10)


def _sqlite_engine(path: str) -> Engine:
    if path == ":memory:":
        # Single shared connection so every thread sees the same tables
        return create_engine(
            "sqlite://",
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        f"sqlite:///{path}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 30.0},
        pool_pre_ping=True,
    )


def _enable_wal_mode(path: str) -> None:
    """Switch a SQLite file to write-ahead logging."""
    try:
        conn = sqlite3.connect(path, timeout=30.0)
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
        finally:
            conn.close()
    except sqlite3.Error as e:
        logger.warning(f"Could not enable WAL mode on {path}: {e}")


class Database:
    """Owns the SQLAlchemy engine and session factory."""

    def __init__(
        self, db_path: Optional[str] = None, database_url: Optional[str] = None
    ):
        """
        Args:
            db_path: SQLite file for development; defaults to DB_PATH
            database_url: PostgreSQL URL for production; defaults to the DB_* settings
        """
        if is_production():
            url = database_url or get_database_url()
            if not url:
                raise ValueError("Production mode requires a PostgreSQL database URL")
            self.db_type = "postgresql"
            self.db_path = None
            self.engine = _postgres_engine(url)
            logger.info("Using PostgreSQL (production mode)")
        else:
            self.db_type = "sqlite"
            self.db_path = db_path or get_db_path()
            self.engine = _sqlite_engine(self.db_path)
            if self.db_path != ":memory:":
                _enable_wal_mode(self.db_path)
            logger.info(f"Using SQLite at {self.db_path} (development mode)")

        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )

    def create_tables(self):
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            logger.error(f"Error creating listing tables: {e}")
            raise
        logger.info(f"Listing tables ready ({self.db_type})")

    def get_session(self) -> Session:
        return self.SessionLocal()

    def close(self):
        self.engine.dispose()


class ListingRepository:
    """Repository for listing operations. This is the search engine's data source."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, listing_id: int) -> Optional[ListingModel]:
        """Get listing by ID."""
        return (
            self.session.query(ListingModel)
            .filter(ListingModel.id == listing_id)
            .first()
        )

    def count(self) -> int:
        return self.session.query(ListingModel).count()

    def list_page(self, page: int = 1, page_size: int = 50) -> List[ListingModel]:
        """Listings ordered by id, one page at a time."""
        return (
            self.session.query(ListingModel)
            .order_by(ListingModel.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

    def list_all(self) -> List[ListingModel]:
        return self.session.query(ListingModel).order_by(ListingModel.id).all()

    def load_records(self) -> List[PropertyRecord]:
        """All listings as property records, in id order."""
        return [PropertyRecord.from_listing(listing) for listing in self.list_all()]

    def bulk_create(self, listings: Iterable[dict]) -> List[ListingModel]:
        """Insert listings; raw prices are stored as text exactly as given."""
        created = []
        try:
            for data in listings:
                data = dict(data)
                if data.get("raw_price") is not None:
                    data["raw_price"] = str(data["raw_price"])
                listing = ListingModel(**data)
                self.session.add(listing)
                created.append(listing)
            self.session.flush()
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error creating listings: {e}")
            raise
        logger.info(f"Created {len(created)} listings")
        return created
