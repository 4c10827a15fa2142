"""
Live-schema introspector — reflect an existing database into registry models
and wire associations from its real foreign keys.
"""
import logging
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.associations import DEFAULT_ON_DELETE, DEFAULT_ON_UPDATE, BelongsTo, HasMany
from core.column_builder import ColumnBuilder, ColumnDefinition, is_live_timestamp
from core.model_builder import ModelBuilder
from core.naming import strip_key_suffix
from core.registry import ModelOptions, ModelRegistry
from models.schema import Column

logger = logging.getLogger(__name__)

# Checked in order; the first substring found in the lower-cased native type wins.
NATIVE_TYPE_PATTERNS: list[tuple[str, str]] = [
    ("tinyint(1)", "boolean"),
    ("interval", "string"),
    ("point", "geometry"),
    ("geometry", "geometry"),
    ("geography", "geography"),
    ("bigint", "bigint"),
    ("smallint", "smallint"),
    ("tinyint", "smallint"),
    ("int", "integer"),
    ("serial", "integer"),
    ("double", "double"),
    ("float", "float"),
    ("real", "real"),
    ("decimal", "decimal"),
    ("numeric", "decimal"),
    ("money", "decimal"),
    ("bool", "boolean"),
    ("bit", "boolean"),
    ("timestamp", "timestamp"),
    ("datetime", "datetime"),
    ("date", "date"),
    ("time", "time"),
    ("uuid", "uuid"),
    ("uniqueidentifier", "uuid"),
    ("jsonb", "jsonb"),
    ("json", "json"),
    ("enum", "enum"),
    ("varchar", "string"),
    ("char", "char"),
    ("text", "text"),
    ("clob", "text"),
    ("blob", "blob"),
    ("binary", "binary"),
    ("bytea", "binary"),
]

AUTO_INCREMENT_MARKERS = ("auto_increment", "autoincrement", "nextval", "identity")


def map_native_type(native: str) -> str:
    """VARCHAR(100) → string, BIGINT → bigint, TINYINT(1) → boolean. Unknown → string."""
    lowered = (native or "").lower()
    # INTEGER[] and ARRAY(...) name their element type, which would match first
    if lowered.endswith("[]") or lowered.startswith("array"):
        return "array"
    for pattern, logical in NATIVE_TYPE_PATTERNS:
        if pattern in lowered:
            return logical
    return "string"


def _type_args(col_type: sa.types.TypeEngine) -> dict[str, Any]:
    args: dict[str, Any] = {}
    length = getattr(col_type, "length", None)
    if isinstance(length, int) and length > 0:
        args["length"] = length
    precision = getattr(col_type, "precision", None)
    if isinstance(precision, int) and precision > 0:
        args["precision"] = precision
        scale = getattr(col_type, "scale", None)
        if isinstance(scale, int) and scale >= 0:
            args["scale"] = scale
    enums = getattr(col_type, "enums", None)
    if enums:
        args["values"] = list(enums)
    return args


def _is_auto_increment(raw: dict[str, Any], pk_cols: list[str]) -> bool:
    if raw.get("autoincrement") is True:
        return True
    if raw.get("identity"):
        return True
    default = str(raw.get("default") or "").lower()
    if any(marker in default for marker in AUTO_INCREMENT_MARKERS):
        return True
    # a lone INTEGER primary key is the rowid alias on SQLite
    return (
        len(pk_cols) == 1
        and raw["name"] == pk_cols[0]
        and map_native_type(str(raw["type"])) == "integer"
        and raw.get("autoincrement", "auto") is not False
    )


def _describe_table(insp, table_name: str, builder: ColumnBuilder) -> list[ColumnDefinition]:
    pk_cols = insp.get_pk_constraint(table_name).get("constrained_columns") or []
    unique_cols: set[str] = set()
    try:
        for uc in insp.get_unique_constraints(table_name):
            if len(uc.get("column_names") or []) == 1:
                unique_cols.add(uc["column_names"][0])
    except NotImplementedError:
        pass

    definitions = []
    for raw in insp.get_columns(table_name):
        native = str(raw["type"])
        auto_inc = _is_auto_increment(raw, pk_cols)
        default = raw.get("default")
        column = Column(
            name=raw["name"],
            type=map_native_type(native),
            primary_key=raw["name"] in pk_cols,
            nullable=raw.get("nullable", True),
            unique=raw["name"] in unique_cols,
            auto_increment=auto_inc,
            comment=raw.get("comment"),
            **_type_args(raw["type"]),
        )
        definition = builder.build(column, table_name)
        # reflected defaults are SQL text; never resend them as Python values
        if default is not None and not auto_inc:
            definition.server_default = (
                sa.text("CURRENT_TIMESTAMP") if is_live_timestamp(default) else sa.text(str(default))
            )
        definitions.append(definition)
    return definitions


def discover_models(engine: Engine, registry: ModelRegistry, model_builder: Optional[ModelBuilder] = None) -> list[str]:
    """Register a model for every live table not already in the registry. Returns the new names."""
    model_builder = model_builder or ModelBuilder()
    builder = ColumnBuilder(strict=False)
    insp = sa.inspect(engine)

    discovered = []
    for table_name in insp.get_table_names():
        if table_name in registry:
            continue
        definitions = _describe_table(insp, table_name, builder)
        model_builder.build_from_definitions(
            table_name,
            definitions,
            registry,
            options=ModelOptions(table_name=table_name),
            discovered=True,
        )
        discovered.append(table_name)

    logger.info("Discovered %d table(s): %s", len(discovered), ", ".join(discovered) or "-")
    return discovered


def auto_associate(engine: Engine, registry: ModelRegistry) -> int:
    """
    For every live foreign key between registered models add
    ``belongsTo`` on the referencing model and ``hasMany`` on the referenced one.

    Association names already in use are left alone, so running this twice adds
    nothing the second time. Returns the number of associations added.
    """
    insp = sa.inspect(engine)
    added = 0

    for source in registry.models().values():
        try:
            foreign_keys = insp.get_foreign_keys(source.table_name)
        except (NotImplementedError, SQLAlchemyError) as e:
            logger.warning("Skipping FK introspection for '%s': %s", source.table_name, e)
            continue

        for fk in foreign_keys:
            target = registry.find(fk.get("referred_table"))
            local = fk.get("constrained_columns") or []
            remote = fk.get("referred_columns") or []
            if target is None or not local:
                continue

            fk_col = local[0]
            ref_col = remote[0] if remote else target.primary_key
            options = fk.get("options") or {}
            on_delete = (options.get("ondelete") or DEFAULT_ON_DELETE).upper()
            on_update = (options.get("onupdate") or DEFAULT_ON_UPDATE).upper()

            belongs_name = strip_key_suffix(fk_col)
            if belongs_name == fk_col:
                belongs_name = f"{target.name}_{fk_col}"
            if belongs_name not in source.associations:
                source.add_association(BelongsTo(
                    name=belongs_name, source=source.name, target=target.name,
                    foreign_key=fk_col, target_key=ref_col,
                    on_delete=on_delete, on_update=on_update,
                ))
                added += 1

            has_many_name = source.name
            if has_many_name in target.associations and target.associations[has_many_name].foreign_key != fk_col:
                has_many_name = f"{source.name}_{fk_col}"
            if has_many_name not in target.associations:
                target.add_association(HasMany(
                    name=has_many_name, source=target.name, target=source.name,
                    foreign_key=fk_col, source_key=ref_col,
                    on_delete=on_delete, on_update=on_update,
                ))
                added += 1

    logger.info("Auto-associated %d relation(s) from foreign keys", added)
    return added
