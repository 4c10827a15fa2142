"""
Tablesmith — dynamic schema & relation engine over relational databases.
FastAPI application entry point.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import databases, health, records, relations, schema
from api.databases import PRIMARY, db_manager
from config import settings
from core.exceptions import DatabaseConnectionError, TablesmithError
from models.connection import DatabaseConfig

# ── Logging ──────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger("tablesmith")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Tablesmith starting up…")
    if settings.PRIMARY_SQLITE_PATH:
        os.makedirs(os.path.dirname(os.path.abspath(settings.PRIMARY_SQLITE_PATH)), exist_ok=True)
        try:
            db_manager.add_database(
                PRIMARY,
                DatabaseConfig(dialect="sqlite", database=settings.PRIMARY_SQLITE_PATH),
                persist=False,
            )
        except DatabaseConnectionError:
            logger.error("Primary database unavailable at %s", settings.PRIMARY_SQLITE_PATH)
    db_manager.connect_persisted()
    yield
    db_manager.disconnect_all()
    logger.info("Tablesmith shutting down.")


# ── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="Tablesmith",
    description="Define tables, relations and records over SQLite, PostgreSQL, MySQL and MSSQL at runtime.",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Errors ────────────────────────────────────────────────────────────────────
@app.exception_handler(TablesmithError)
async def tablesmith_error_handler(request: Request, exc: TablesmithError):
    body = {"error": exc.message}
    if exc.errors:
        body["errors"] = exc.errors
    available = getattr(exc, "available", None)
    if available:
        body["available"] = available
    if exc.status_code >= 500:
        logger.error("%s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(body, status_code=exc.status_code)


# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(health.router,    prefix="/api")
app.include_router(databases.router, prefix="/api")
app.include_router(schema.router,    prefix="/api")
app.include_router(relations.router, prefix="/api")
app.include_router(records.router,   prefix="/api")
