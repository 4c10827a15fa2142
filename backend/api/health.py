"""GET /api/health — per-database connectivity check."""
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api.databases import db_manager
from core.exceptions import DatabaseConnectionError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health_check():
    databases = {name: _check_database(name) for name in db_manager.names()}
    for name, db in db_manager.failed.items():
        databases[name] = {"status": "down", "error": db.last_error}

    healthy = bool(databases) and all(d["status"] == "up" for d in databases.values())
    body = {"status": "ok" if healthy else "degraded", "databases": databases}
    return JSONResponse(body, status_code=200 if healthy else 503)


def _check_database(name: str) -> dict:
    database = db_manager.get_database(name)
    try:
        elapsed = database.ping()
        return {"status": "up", "dialect": database.config.dialect, "response_time_ms": elapsed}
    except (SQLAlchemyError, DatabaseConnectionError) as e:
        logger.warning("Health check failed for '%s': %s", name, e)
        return {"status": "down", "error": str(e)}
