"""/api/records — query and write rows of registered tables."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from api.databases import get_database, require_databases
from core import records
from models.records import DeleteRequest, InsertRequest, QueryRequest, QueryResponse, UpdateRequest

router = APIRouter(dependencies=[Depends(require_databases)])
logger = logging.getLogger(__name__)


def _target(database: str, table: str):
    db = get_database(database)
    return db, db.registry.get(table)


def _database_error(action: str, e: SQLAlchemyError) -> HTTPException:
    if isinstance(e, IntegrityError):
        return HTTPException(409, detail=f"{action} violates a constraint: {e.orig}")
    logger.exception("%s failed", action)
    return HTTPException(500, detail=f"{action} failed: {e}")


@router.post("/records/{database}/{table}/query", response_model=QueryResponse)
def query_records(database: str, table: str, req: QueryRequest):
    db, model = _target(database, table)
    try:
        rows = records.find_all(
            model, db.registry, db.get_engine(),
            columns=req.columns,
            where=req.where,
            include=req.include_items(),
            order=req.order,
            limit=req.limit,
            offset=req.offset,
        )
    except SQLAlchemyError as e:
        raise _database_error("Query", e)
    return QueryResponse(table=model.table_name, count=len(rows), rows=rows)


@router.post("/records/{database}/{table}", status_code=201)
def insert_record(database: str, table: str, req: InsertRequest):
    db, model = _target(database, table)
    try:
        row = records.insert(model, db.get_engine(), req.data)
    except SQLAlchemyError as e:
        raise _database_error("Insert", e)
    return {"message": "Record created", "table": model.table_name, "record": row}


@router.put("/records/{database}/{table}")
def update_records(database: str, table: str, req: UpdateRequest):
    db, model = _target(database, table)
    try:
        affected = records.update(model, db.get_engine(), req.data, req.where)
    except SQLAlchemyError as e:
        raise _database_error("Update", e)
    if affected == 0:
        raise HTTPException(404, detail="No records matched")
    return {"message": "Records updated", "table": model.table_name, "affected": affected}


@router.delete("/records/{database}/{table}")
def delete_records(database: str, table: str, req: DeleteRequest):
    db, model = _target(database, table)
    try:
        affected = records.delete(model, db.get_engine(), req.where, force=req.force)
    except SQLAlchemyError as e:
        raise _database_error("Delete", e)
    if affected == 0:
        raise HTTPException(404, detail="No records matched")
    return {
        "message": "Records deleted",
        "table": model.table_name,
        "affected": affected,
        "soft": model.options.paranoid and not req.force,
    }
