"""/api/relations — relation validation, graph building and FK discovery."""
import logging
import time
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from api.databases import get_database, require_databases
from api.schema import SyncMode, conversion_options
from core.associations import RELATION_DESCRIPTIONS
from core.converter import SchemaConverter
from core.model_builder import ConversionOptions
from models.schema import TableSchema, ValidationResult

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/relations")
def relations_info():
    return {
        "message": "Relations endpoint is active",
        "timestamp": int(time.time() * 1000),
        "supported_relations": RELATION_DESCRIPTIONS,
    }


@router.post("/relations/validate", response_model=ValidationResult)
def validate_relations(schemas: list[TableSchema]):
    return SchemaConverter().validate_relations(schemas)


@router.get("/relations/example")
def relations_example():
    schemas = SchemaConverter.example()
    return {
        "message": "Example blog schema with users, posts, profiles, categories, roles and tags",
        "schemas": [s.model_dump(by_alias=True, exclude_none=True) for s in schemas],
    }


def _relations_count(schemas: list[TableSchema]) -> int:
    return sum(len(s.relations or []) for s in schemas)


@router.post("/relations/{database}/establish", dependencies=[Depends(require_databases)])
def establish_relations(
    database: str,
    schemas: list[TableSchema],
    options: ConversionOptions = Depends(conversion_options),
):
    db = get_database(database)
    converter = SchemaConverter(options)
    registry = converter.establish_relations(schemas, db.registry)

    logger.info("Relations established for %d models in '%s'", len(schemas), database)
    return {
        "message": "Relations established successfully",
        "database": database,
        "models": registry.names(),
        "relations_count": _relations_count(schemas) - len(converter.skipped),
        "skipped": [asdict(s) for s in converter.skipped],
    }


@router.post("/relations/{database}/create-with-relations", status_code=201, dependencies=[Depends(require_databases)])
def create_with_relations(
    database: str,
    schemas: list[TableSchema],
    sync: SyncMode = "safe",
    options: ConversionOptions = Depends(conversion_options),
):
    db = get_database(database)
    converter = SchemaConverter(options)
    try:
        tables = converter.create_with_relations(schemas, db.registry, db.get_engine(), sync=sync)
    except SQLAlchemyError as e:
        logger.exception("Creating tables with relations failed")
        raise HTTPException(500, detail=f"Failed to create tables with relations: {e}")

    logger.info("Created %d tables with relations in '%s'", len(tables), database)
    return {
        "message": "Tables and relations created successfully",
        "database": database,
        "tables": tables,
        "relations_count": _relations_count(schemas) - len(converter.skipped),
        "skipped": [asdict(s) for s in converter.skipped],
    }


@router.post("/relations/{database}/discover", dependencies=[Depends(require_databases)])
def discover(database: str):
    """Register tables created outside the API and wire their foreign keys."""
    db = get_database(database)
    try:
        result = db.refresh()
    except SQLAlchemyError as e:
        logger.exception("Discovery failed")
        raise HTTPException(500, detail=f"Discovery failed: {e}")
    return {"database": database, **result, "models": db.registry.names()}


@router.get("/relations/{database}/models", dependencies=[Depends(require_databases)])
def list_models(database: str):
    db = get_database(database)
    models = [m.describe() for m in db.registry.models().values()]
    return {
        "database": database,
        "models_count": len(models),
        "models": models,
    }


@router.get("/relations/{database}/{model}/associations", dependencies=[Depends(require_databases)])
def model_associations(database: str, model: str):
    db = get_database(database)
    found = db.registry.get(model)
    return {
        "database": database,
        "model": found.name,
        "table_name": found.table_name,
        "associations": [a.describe() for a in found.associations.values()],
    }
