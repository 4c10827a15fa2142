"""
Table Model Builder — TableSchema → registered Model (+ optional table sync).

Also hosts structural schema validation, which runs before any model is built.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.schema import CreateColumn

from core.column_builder import ColumnBuilder, ColumnDefinition
from core.exceptions import ConflictError
from core.naming import pluralize
from core.registry import Model, ModelOptions, ModelRegistry
from core.type_mapper import is_known
from models.schema import ConstraintSpec, IndexSpec, TableSchema

logger = logging.getLogger(__name__)

SYNC_MODES = ("create", "safe", "alter")


@dataclass
class ConversionOptions:
    strict_validation: bool = False
    add_timestamps: bool = False
    paranoid: bool = False
    underscored: bool = False
    freeze_table_name: bool = True
    auto_associate: bool = False


# ── Validation ────────────────────────────────────────────────────────────────

def validate_schema(schema: TableSchema, strict: bool = False) -> list[str]:
    """Return every structural problem found in ``schema`` (empty list = valid)."""
    errors: list[str] = []

    if not schema.table_name or not schema.table_name.strip():
        errors.append("Table name is required and must be a string")

    if not schema.columns:
        errors.append("At least one column is required")
        return errors

    if strict and not schema.primary_key_columns():
        errors.append("Table must have at least one primary key column")

    seen: dict[str, int] = {}
    for index, column in enumerate(schema.columns):
        if not column.name:
            errors.append(f"Column at index {index}: name is required and must be a string")
        else:
            seen[column.name] = seen.get(column.name, 0) + 1
        if not column.type:
            errors.append(f"Column '{column.name or index}': type is required and must be a string")
        elif strict and not is_known(column.type):
            errors.append(f"Column '{column.name}': unsupported type '{column.type}'")

    for name, count in seen.items():
        if count > 1:
            errors.append(f"Duplicate column name: {name}")

    known = set(seen)
    for idx in schema.indexes or []:
        missing = [c for c in idx.columns if c not in known]
        if missing:
            errors.append(f"Index '{idx.name}' references unknown column(s): {', '.join(missing)}")
    for constraint in schema.constraints or []:
        missing = [c for c in constraint.columns if c not in known]
        if missing:
            errors.append(f"Constraint '{constraint.name}' references unknown column(s): {', '.join(missing)}")
        if constraint.type == "CHECK" and not constraint.condition:
            errors.append(f"Constraint '{constraint.name}': CHECK requires a condition")
        if constraint.type == "FOREIGN_KEY" and not constraint.reference:
            errors.append(f"Constraint '{constraint.name}': FOREIGN_KEY requires a reference")

    return errors


# ── Building ──────────────────────────────────────────────────────────────────

def _index_items(table_name: str, definitions: list[ColumnDefinition], indexes: list[IndexSpec]) -> list[sa.Index]:
    items = []
    for idx in indexes:
        kwargs = {"postgresql_using": idx.type.lower()} if idx.type else {}
        items.append(sa.Index(idx.name, *idx.columns, unique=idx.unique, **kwargs))
    # Column-level flags; primary / unique columns are indexed already
    for d in definitions:
        if d.index and not d.primary_key and not d.unique:
            items.append(sa.Index(f"ix_{table_name}_{d.name}", d.name))
    return items


def _constraint_items(constraints: list[ConstraintSpec]) -> list[sa.schema.Constraint]:
    items: list[sa.schema.Constraint] = []
    for c in constraints:
        if c.type == "CHECK":
            items.append(sa.CheckConstraint(c.condition, name=c.name))
        elif c.type == "UNIQUE":
            items.append(sa.UniqueConstraint(*c.columns, name=c.name))
        elif c.type == "FOREIGN_KEY" and c.reference:
            refs = [f"{c.reference.table}.{col}" for col in c.reference.columns]
            items.append(sa.ForeignKeyConstraint(c.columns, refs, name=c.name))
    return items


class ModelBuilder:
    def __init__(self, options: Optional[ConversionOptions] = None):
        self.options = options or ConversionOptions()
        self.column_builder = ColumnBuilder(strict=self.options.strict_validation)

    def model_options(self, name: str) -> ModelOptions:
        return ModelOptions(
            table_name=name if self.options.freeze_table_name else pluralize(name),
            timestamps=self.options.add_timestamps,
            paranoid=self.options.paranoid,
            underscored=self.options.underscored,
            freeze_table_name=self.options.freeze_table_name,
        )

    def build(self, schema: TableSchema, registry: ModelRegistry) -> Model:
        """Build every column, assemble the table and register it under ``table_name``."""
        definitions = [self.column_builder.build(c, schema.table_name) for c in schema.columns]
        return self.build_from_definitions(
            schema.table_name,
            definitions,
            registry,
            indexes=schema.indexes or [],
            constraints=schema.constraints or [],
        )

    def build_from_definitions(
        self,
        name: str,
        definitions: list[ColumnDefinition],
        registry: ModelRegistry,
        indexes: Optional[list[IndexSpec]] = None,
        constraints: Optional[list[ConstraintSpec]] = None,
        options: Optional[ModelOptions] = None,
        discovered: bool = False,
    ) -> Model:
        options = options or self.model_options(name)
        columns = [d.to_column() for d in definitions]
        present = {d.name for d in definitions}

        if options.timestamps:
            for col_name in (options.created_at, options.updated_at):
                if col_name not in present:
                    columns.append(sa.Column(
                        col_name, sa.DateTime, nullable=False,
                        default=sa.func.current_timestamp(),
                        onupdate=sa.func.current_timestamp() if col_name == options.updated_at else None,
                    ))
        if options.paranoid and options.deleted_at not in present:
            columns.append(sa.Column(options.deleted_at, sa.DateTime, nullable=True))

        items = _index_items(options.table_name, definitions, indexes or [])
        items += _constraint_items(constraints or [])

        previous = registry.find(name)
        if previous is not None:
            registry.release_table(previous.table_name)
        registry.release_table(options.table_name)

        table = sa.Table(options.table_name, registry.metadata, *columns, *items)
        model = Model(
            name=name,
            table=table,
            columns={d.name: d for d in definitions},
            options=options,
            discovered=discovered,
        )
        registry.register(model)
        logger.debug("Built model '%s' (%d columns)", name, len(table.columns))
        return model


# ── Synchronization ───────────────────────────────────────────────────────────

def table_exists(engine: Engine, table_name: str) -> bool:
    return sa.inspect(engine).has_table(table_name)


def sync_model(model: Model, engine: Engine, mode: str = "create") -> list[str]:
    """
    Push a model's table to the database.

    create — CREATE TABLE, ConflictError if the table already exists
    safe   — CREATE TABLE only when missing
    alter  — create when missing, otherwise ADD COLUMN for every missing column

    Returns the names of columns added by alter, empty otherwise.
    """
    if mode not in SYNC_MODES:
        raise ValueError(f"Unknown sync mode '{mode}', expected one of {SYNC_MODES}")

    exists = table_exists(engine, model.table_name)
    if mode == "create":
        if exists:
            raise ConflictError(f"Table '{model.table_name}' already exists")
        model.table.create(engine)
        logger.info("Created table '%s'", model.table_name)
        return []
    if not exists:
        model.table.create(engine)
        logger.info("Created table '%s'", model.table_name)
        return []
    if mode == "safe":
        return []

    live = {c["name"] for c in sa.inspect(engine).get_columns(model.table_name)}
    missing = [c for c in model.table.columns if c.name not in live]
    if not missing:
        return []

    preparer = engine.dialect.identifier_preparer
    add = "ADD" if engine.dialect.name == "mssql" else "ADD COLUMN"
    with engine.begin() as conn:
        for column in missing:
            ddl = CreateColumn(column).compile(dialect=engine.dialect)
            conn.execute(sa.text(f"ALTER TABLE {preparer.format_table(model.table)} {add} {ddl}"))
            logger.info("Added column '%s' to '%s'", column.name, model.table_name)
    return [c.name for c in missing]
