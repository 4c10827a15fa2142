"""/api/databases — live connection management and persisted configs."""
import logging

from fastapi import APIRouter, HTTPException, Response

from config import settings
from core.config_store import ConfigStore
from core.database import Database, DatabaseManager
from models.connection import DatabaseConfig, DatabaseListResponse, DatabaseStatus, FailedDatabase

router = APIRouter()
logger = logging.getLogger(__name__)

PRIMARY = "primary"

# Shared by every router; one registry per connected database
db_manager = DatabaseManager(ConfigStore(settings.CONFIG_STORE_PATH))


def get_database(name: str) -> Database:
    """Connected database by name. 404 lists the names that do exist."""
    return db_manager.get_database(name)


def require_databases() -> None:
    if not db_manager.names():
        raise HTTPException(503, detail="No database connections available")


@router.get("/databases", response_model=DatabaseListResponse)
def list_databases():
    return DatabaseListResponse(
        databases=[DatabaseStatus(**db.describe()) for db in db_manager.databases.values()],
        failed=[
            FailedDatabase(name=name, dialect=db.config.dialect, error=db.last_error)
            for name, db in db_manager.failed.items()
        ],
    )


@router.get("/databases/config")
def list_configs():
    return {"databases": [{"name": e.name, "config": e.config.public()} for e in db_manager.store.entries()]}


@router.post("/databases/retry")
def retry_databases():
    result = db_manager.retry_failed()
    logger.info("Retry: %d reconnected, %d still failing", len(result["ok"]), len(result["failed"]))
    return result


@router.post("/databases/{name}")
def connect_database(name: str, config: DatabaseConfig, response: Response):
    """Connect (or reconnect) ``name``. Replacing a live connection answers 409 with the new state."""
    replaced = name in db_manager
    database = db_manager.add_database(name, config)
    if replaced:
        response.status_code = 409
        message = f"Database '{name}' already existed and was reconnected"
    else:
        response.status_code = 201
        message = f"Database '{name}' connected"
    return {"message": message, **database.describe()}


@router.delete("/databases/{name}")
def disconnect_database(name: str):
    if name == PRIMARY:
        raise HTTPException(403, detail="The primary database cannot be removed")
    db_manager.remove_database(name)
    return {"message": f"Database '{name}' removed successfully."}


@router.get("/databases/{name}/info")
def database_info(name: str):
    database = get_database(name)
    return {
        **database.describe(),
        "config": database.config.public(),
        "version": database.version(),
        "tables": sorted(database.registry.names()),
    }
