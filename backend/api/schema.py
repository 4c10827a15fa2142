"""/api/schema — table definitions: validate, create, describe and drop."""
import logging
from typing import Literal, Optional

import sqlalchemy as sa
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from api.databases import db_manager, get_database, require_databases
from config import settings
from core.converter import SchemaConverter
from core.model_builder import ConversionOptions
from models.schema import TableSchema, ValidationResult

router = APIRouter()
logger = logging.getLogger(__name__)

SyncMode = Literal["create", "safe", "alter"]


def conversion_options(
    strict: Optional[bool] = None,
    timestamps: bool = False,
    paranoid: bool = False,
    underscored: bool = False,
    freeze_table_name: bool = True,
) -> ConversionOptions:
    """Query-string conversion options shared by the schema and relation routes."""
    return ConversionOptions(
        strict_validation=settings.STRICT_VALIDATION if strict is None else strict,
        add_timestamps=timestamps,
        paranoid=paranoid,
        underscored=underscored,
        freeze_table_name=freeze_table_name,
    )


@router.get("/schema")
def schema_info():
    return {
        "message": "Schema endpoint is active",
        "databases": db_manager.names(),
        "strict_validation": settings.STRICT_VALIDATION,
        "types_count": len(SchemaConverter.get_available_types()),
    }


@router.get("/schema/types")
def list_types():
    return {"types": SchemaConverter.get_available_types()}


@router.post("/schema/validate", response_model=ValidationResult)
def validate_table(schema: TableSchema, options: ConversionOptions = Depends(conversion_options)):
    return SchemaConverter(options).validate_schema(schema)


@router.get("/schema/{database}/tables", dependencies=[Depends(require_databases)])
def list_tables(database: str):
    db = get_database(database)
    try:
        live = sa.inspect(db.get_engine()).get_table_names()
    except SQLAlchemyError as e:
        logger.exception("Listing tables failed")
        raise HTTPException(500, detail=f"Failed to list tables: {e}")
    return {
        "database": database,
        "tables": [{"name": t, "registered": t in db.registry} for t in sorted(live)],
    }


@router.get("/schema/{database}/tables/{table}", dependencies=[Depends(require_databases)])
def describe_table(database: str, table: str):
    db = get_database(database)
    insp = sa.inspect(db.get_engine())
    if not insp.has_table(table):
        raise HTTPException(404, detail=f"Table '{table}' not found in '{database}'")
    try:
        pk = set(insp.get_pk_constraint(table).get("constrained_columns") or [])
        columns = [
            {
                "name": c["name"],
                "type": str(c["type"]),
                "nullable": c.get("nullable", True),
                "default": None if c.get("default") is None else str(c["default"]),
                "primary_key": c["name"] in pk,
                "autoincrement": c.get("autoincrement") is True,
            }
            for c in insp.get_columns(table)
        ]
        indexes = [
            {"name": i["name"], "columns": i["column_names"], "unique": bool(i.get("unique"))}
            for i in insp.get_indexes(table)
        ]
        foreign_keys = [
            {
                "columns": fk["constrained_columns"],
                "referred_table": fk["referred_table"],
                "referred_columns": fk["referred_columns"],
            }
            for fk in insp.get_foreign_keys(table)
        ]
    except SQLAlchemyError as e:
        logger.exception("Describing table failed")
        raise HTTPException(500, detail=f"Failed to describe table: {e}")

    model = db.registry.find(table)
    return {
        "database": database,
        "table": table,
        "columns": columns,
        "indexes": indexes,
        "foreign_keys": foreign_keys,
        "associations": [a.describe() for a in model.associations.values()] if model else [],
    }


@router.post("/schema/{database}/tables", status_code=201, dependencies=[Depends(require_databases)])
def create_table(
    database: str,
    schema: TableSchema,
    sync: SyncMode = "create",
    options: ConversionOptions = Depends(conversion_options),
):
    db = get_database(database)
    try:
        model = SchemaConverter(options).convert_to_model(schema, db.registry, db.get_engine(), sync=sync)
    except SQLAlchemyError as e:
        logger.exception("Table creation failed")
        raise HTTPException(500, detail=f"Failed to create table: {e}")

    logger.info("Table '%s' synced in '%s' (%s)", model.table_name, database, sync)
    return {
        "message": f"Table '{model.table_name}' created successfully",
        "database": database,
        "table": model.table_name,
        "model": model.describe(),
    }


@router.delete("/schema/{database}/tables/{table}", dependencies=[Depends(require_databases)])
def drop_table(database: str, table: str):
    db = get_database(database)
    engine = db.get_engine()
    if not sa.inspect(engine).has_table(table):
        raise HTTPException(404, detail=f"Table '{table}' not found in '{database}'")
    try:
        sa.Table(table, sa.MetaData(), autoload_with=engine).drop(engine)
    except SQLAlchemyError as e:
        logger.exception("Dropping table failed")
        raise HTTPException(500, detail=f"Failed to delete table: {e}")

    db.registry.remove(table)
    logger.info("Table '%s' dropped from '%s'", table, database)
    return {"message": f"Table '{table}' deleted successfully", "database": database, "table": table}
