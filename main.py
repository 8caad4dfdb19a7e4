"""
Property map search API.

Hosts viewport-synchronized search sessions: the browser reports viewport,
filter and selection events, the backend answers with the filtered listings,
statistics and the map commands to apply.
"""

import logging
import time
from typing import Any, Dict

from dotenv import load_dotenv

# .env must be loaded before config reads the environment
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from config import ENVIRONMENT, get_db_instance, is_production, set_db_instance
from database import Database
from api.routes import map, properties, statistics
from api.session_store import get_session_store

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

db_instance = Database()
db_instance.create_tables()
set_db_instance(db_instance)
logger.info(f"Listings database: {db_instance.db_type}")


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Log method, path and duration of every request."""

    async def dispatch(self, request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info("%s %s %.2f ms", request.method, request.url.path, elapsed_ms)
        return response


app = FastAPI(
    title="Property Map Search API",
    description="Viewport-synchronized map search over marketplace listings",
    version=API_VERSION,
)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # wildcard origins forbid credentials
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(properties.router, prefix="/api/properties", tags=["properties"])
app.include_router(map.router, prefix="/api/maps", tags=["maps"])
app.include_router(statistics.router, prefix="/api/statistics", tags=["statistics"])


def _database_status() -> Dict[str, Any]:
    try:
        db = get_db_instance()
    except RuntimeError as e:
        return {"type": "unknown", "connected": False, "error": str(e)}

    status: Dict[str, Any] = {"type": db.db_type, "connected": False}
    session = db.get_session()
    try:
        session.execute(text("SELECT 1"))
        status["connected"] = True
    except SQLAlchemyError as e:
        logger.error(f"Health check query failed: {e}")
        status["error"] = str(e)
    finally:
        session.close()
    return status


@app.get("/")
async def root():
    return {"message": "Property Map Search API", "version": API_VERSION, "docs": "/docs"}


@app.get("/health")
async def health():
    """Database reachability and search session counts."""
    database = _database_status()
    return {
        "status": "healthy" if database["connected"] else "unhealthy",
        "environment": "production" if is_production() else "development",
        "environment_variable": ENVIRONMENT,
        "database": database,
        "sessions": get_session_store().stats(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
