"""
SchemaConverter — the single entry point the routes use for schema conversion,
relation management and live discovery.

Validation always runs first and raises before the registry or the database is
touched.
"""
import logging
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from core.exceptions import ConflictError, RelationValidationError, SchemaValidationError
from core.introspector import auto_associate, discover_models
from core.model_builder import ConversionOptions, ModelBuilder, sync_model, table_exists, validate_schema
from core.registry import Model, ModelRegistry
from core.relations import RelationGraphBuilder, SkippedRelation, example_schemas, validate_relations
from core.type_mapper import available_types
from models.schema import TableSchema, ValidationResult

logger = logging.getLogger(__name__)


class SchemaConverter:
    def __init__(self, options: Optional[ConversionOptions] = None):
        self.options = options or ConversionOptions()
        self.model_builder = ModelBuilder(self.options)
        self.skipped: list[SkippedRelation] = []

    # ── Schemas ───────────────────────────────────────────────────────────────

    def validate_schema(self, schema: TableSchema) -> ValidationResult:
        return ValidationResult.from_errors(validate_schema(schema, strict=self.options.strict_validation))

    def _check_schema(self, schema: TableSchema, registry: ModelRegistry, engine: Optional[Engine]) -> None:
        errors = validate_schema(schema, strict=self.options.strict_validation)
        live = set(sa.inspect(engine).get_table_names()) if engine is not None else set()
        for column in schema.columns:
            fk = column.foreign_key
            if fk is None or fk.table == schema.table_name:
                continue
            if fk.table not in registry and fk.table not in live:
                errors.append(f"Column '{column.name}': foreign key references unknown table '{fk.table}'")
        if errors:
            raise SchemaValidationError(f"Invalid schema for '{schema.table_name}'", errors)

    def convert_to_model(
        self,
        schema: TableSchema,
        registry: ModelRegistry,
        engine: Optional[Engine] = None,
        sync: Optional[str] = "create",
    ) -> Model:
        """
        Validate, build and register ``schema``; with an engine, also sync its table.

        In ``create`` mode an existing table raises ConflictError before the registry
        changes. A failed sync puts back the model it replaced, or removes the new one.
        """
        self._check_schema(schema, registry, engine)
        physical = self.model_builder.model_options(schema.table_name).table_name
        if engine is not None and sync == "create" and table_exists(engine, physical):
            raise ConflictError(f"Table '{physical}' already exists")

        previous = registry.find(schema.table_name)
        model = self.model_builder.build(schema, registry)
        if engine is not None and sync:
            try:
                sync_model(model, engine, sync)
            except Exception:
                if previous is not None:
                    registry.restore(previous)
                else:
                    registry.remove(model.name)
                raise
        return model

    # ── Relations ─────────────────────────────────────────────────────────────

    def validate_relations(self, schemas: list[TableSchema]) -> ValidationResult:
        return ValidationResult.from_errors(validate_relations(schemas))

    def establish_relations(self, schemas: list[TableSchema], registry: ModelRegistry) -> ModelRegistry:
        """
        Build every schema's model and realize its relations on ``registry``.

        Strict mode refuses the batch on the first validation error. Lenient mode
        logs the errors, infers what it can and reports the rest in ``skipped``.
        """
        for schema in schemas:
            errors = validate_schema(schema, strict=self.options.strict_validation)
            if errors:
                raise SchemaValidationError(f"Invalid schema for '{schema.table_name}'", errors)

        errors = validate_relations(schemas)
        if errors:
            if self.options.strict_validation:
                raise RelationValidationError("Relation validation failed", errors)
            for error in errors:
                logger.warning("Relation check: %s", error)

        builder = RelationGraphBuilder(self.options, self.model_builder)
        try:
            return builder.establish(schemas, registry)
        finally:
            self.skipped = builder.skipped

    def create_with_relations(
        self,
        schemas: list[TableSchema],
        registry: ModelRegistry,
        engine: Engine,
        sync: str = "safe",
    ) -> list[str]:
        """establish_relations() and then sync every table, referenced tables first."""
        if sync == "create":
            physical = [self.model_builder.model_options(s.table_name).table_name for s in schemas]
            existing = [name for name in physical if table_exists(engine, name)]
            if existing:
                raise ConflictError(f"Table(s) already exist: {', '.join(existing)}")

        self.establish_relations(schemas, registry)
        names = {s.table_name for s in schemas}
        synced = []
        for table in registry.metadata.sorted_tables:
            model = next((m for m in registry.models().values() if m.table is table), None)
            if model is None or model.name not in names:
                continue
            sync_model(model, engine, sync)
            synced.append(model.name)
        logger.info("Synchronized %d table(s) with relations", len(synced))
        return synced

    # ── Live database ─────────────────────────────────────────────────────────

    def discover_models(self, engine: Engine, registry: ModelRegistry) -> list[str]:
        return discover_models(engine, registry, self.model_builder)

    def auto_associate(self, engine: Engine, registry: ModelRegistry) -> int:
        return auto_associate(engine, registry)

    # ── Reference data ────────────────────────────────────────────────────────

    @staticmethod
    def get_available_types() -> list[str]:
        return available_types()

    @staticmethod
    def example() -> list[TableSchema]:
        return example_schemas()
