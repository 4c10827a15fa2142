import pytest
import sqlalchemy as sa
from sqlalchemy.exc import OperationalError
from unittest.mock import patch

from core.converter import SchemaConverter
from core.exceptions import ConflictError
from core.model_builder import ConversionOptions, ModelBuilder, sync_model, table_exists, validate_schema
from models.schema import TableSchema


def users_schema(**extra) -> TableSchema:
    return TableSchema.model_validate({
        "table_name": "users",
        "columns": [
            {"name": "id", "type": "integer", "primary_key": True, "auto_increment": True},
            {"name": "email", "type": "email", "unique": True, "nullable": False},
            {"name": "nickname", "type": "string", "length": 40, "index": True},
        ],
        **extra,
    })


# ── validate_schema ───────────────────────────────────────────────────────────

def test_valid_schema_has_no_errors():
    assert validate_schema(users_schema(), strict=True) == []


def test_missing_table_name_and_columns():
    errors = validate_schema(TableSchema(table_name="", columns=[]))
    assert "Table name is required and must be a string" in errors
    assert "At least one column is required" in errors


def test_duplicate_column_reported_once():
    schema = TableSchema.model_validate({
        "table_name": "t",
        "columns": [{"name": "a", "type": "string"}] * 3,
    })
    assert validate_schema(schema) == ["Duplicate column name: a"]


def test_strict_requires_primary_key_and_known_types():
    schema = TableSchema.model_validate({
        "table_name": "t",
        "columns": [{"name": "a", "type": "hologram"}],
    })
    assert validate_schema(schema) == []
    errors = validate_schema(schema, strict=True)
    assert "Table must have at least one primary key column" in errors
    assert "Column 'a': unsupported type 'hologram'" in errors


def test_column_without_name_or_type():
    schema = TableSchema.model_validate({"table_name": "t", "columns": [{"type": "string"}, {"name": "b"}]})
    errors = validate_schema(schema)
    assert "Column at index 0: name is required and must be a string" in errors
    assert "Column 'b': type is required and must be a string" in errors


def test_index_and_constraint_columns_must_exist():
    schema = users_schema(
        indexes=[{"name": "ix_ghost", "columns": ["ghost"]}],
        constraints=[{"name": "ck_email", "type": "CHECK", "columns": ["email"]}],
    )
    errors = validate_schema(schema)
    assert "Index 'ix_ghost' references unknown column(s): ghost" in errors
    assert "Constraint 'ck_email': CHECK requires a condition" in errors


# ── build ─────────────────────────────────────────────────────────────────────

def test_build_registers_model(registry):
    model = ModelBuilder().build(users_schema(), registry)
    assert registry.get("users") is model
    assert model.primary_key == "id"
    assert [c.name for c in model.table.columns] == ["id", "email", "nickname"]
    assert {i.name for i in model.table.indexes} == {"ix_users_nickname"}


def test_build_replaces_previous_entry(registry):
    builder = ModelBuilder()
    builder.build(users_schema(), registry)
    schema = TableSchema.model_validate({"table_name": "users", "columns": [{"name": "id", "type": "integer", "primary_key": True}]})
    model = builder.build(schema, registry)
    assert len(registry) == 1
    assert [c.name for c in registry.get("users").table.columns] == ["id"]
    assert registry.metadata.tables["users"] is model.table


def test_timestamps_and_paranoid(registry):
    builder = ModelBuilder(ConversionOptions(add_timestamps=True, paranoid=True, underscored=True))
    model = builder.build(users_schema(), registry)
    assert {"created_at", "updated_at", "deleted_at"} <= set(model.table.c.keys())

    camel = ModelBuilder(ConversionOptions(add_timestamps=True)).build(users_schema(), registry)
    assert {"createdAt", "updatedAt"} <= set(camel.table.c.keys())


def test_freeze_table_name_false_pluralizes(registry):
    schema = TableSchema.model_validate({"table_name": "category", "columns": [{"name": "id", "type": "integer", "primary_key": True}]})
    model = ModelBuilder(ConversionOptions(freeze_table_name=False)).build(schema, registry)
    assert model.name == "category"
    assert model.table_name == "categories"


# ── sync ──────────────────────────────────────────────────────────────────────

def test_sync_create_then_conflict(engine, registry):
    model = ModelBuilder().build(users_schema(), registry)
    sync_model(model, engine, "create")
    assert table_exists(engine, "users")
    with pytest.raises(ConflictError):
        sync_model(model, engine, "create")
    assert sync_model(model, engine, "safe") == []


def test_sync_alter_adds_missing_columns(engine, registry):
    builder = ModelBuilder()
    sync_model(builder.build(users_schema(), registry), engine, "create")

    wider = users_schema()
    wider.columns.append(wider.columns[0].model_copy(update={"name": "age", "type": "integer", "primary_key": False, "auto_increment": False}))
    added = sync_model(builder.build(wider, registry), engine, "alter")
    assert added == ["age"]
    live = {c["name"] for c in sa.inspect(engine).get_columns("users")}
    assert "age" in live


def test_unknown_sync_mode(engine, registry):
    model = ModelBuilder().build(users_schema(), registry)
    with pytest.raises(ValueError):
        sync_model(model, engine, "force")


# ── converter ─────────────────────────────────────────────────────────────────

def test_create_conflict_checks_pluralized_table(engine, registry):
    converter = SchemaConverter(ConversionOptions(freeze_table_name=False))
    schema = TableSchema.model_validate({"table_name": "category", "columns": [{"name": "id", "type": "integer", "primary_key": True}]})
    first = converter.convert_to_model(schema, registry, engine)
    assert table_exists(engine, "categories")

    with pytest.raises(ConflictError) as exc:
        converter.convert_to_model(schema, registry, engine)
    assert "categories" in exc.value.message
    assert registry.get("category") is first

    with pytest.raises(ConflictError):
        converter.create_with_relations([schema], registry, engine, sync="create")


def test_failed_sync_keeps_previous_model(engine, registry):
    pk = {"name": "id", "type": "integer", "primary_key": True, "auto_increment": True}
    authors = TableSchema.model_validate({
        "table_name": "authors", "columns": [pk, {"name": "name", "type": "string"}],
        "relations": [{"type": "hasMany", "target": "books"}],
    })
    books = TableSchema.model_validate({
        "table_name": "books", "columns": [pk, {"name": "author_id", "type": "integer"}],
        "relations": [{"type": "belongsTo", "target": "authors"}],
    })
    converter = SchemaConverter()
    converter.create_with_relations([authors, books], registry, engine)
    previous = registry.get("authors")

    wider = authors.model_copy(deep=True)
    wider.relations = []
    wider.columns.append(wider.columns[1].model_copy(update={"name": "bio"}))
    with patch("core.converter.sync_model", side_effect=OperationalError("ALTER TABLE", {}, Exception("locked"))):
        with pytest.raises(OperationalError):
            converter.convert_to_model(wider, registry, engine, sync="alter")

    restored = registry.get("authors")
    assert restored is previous
    assert "books" in restored.associations
    assert "author" in registry.get("books").associations
    assert registry.metadata.tables["authors"] is restored.table
    assert "bio" not in restored.table.c
