import pytest
from pydantic import ValidationError

from models.connection import DatabaseConfig
from models.records import QueryRequest
from models.schema import Column, RelationSpec, TableSchema, ValidationResult


def test_database_config():
    cfg = DatabaseConfig(dialect="sqlite", database="/tmp/test.db")
    assert cfg.is_sqlite
    assert cfg.get_sqlalchemy_url() == "sqlite:////tmp/test.db"

    with pytest.raises(ValidationError):
        DatabaseConfig(dialect="oracle", database="x")


def test_column_aliases():
    col = Column.model_validate({"name": "email", "type": "email", "validate": {"len": [3, 80]}})
    assert col.validate_ == {"len": [3, 80]}
    assert col.nullable is None
    with pytest.raises(ValidationError):
        Column(name="x", type="string", length=0)


def test_relation_spec_camel_case_keys():
    rel = RelationSpec.model_validate({
        "type": "belongsTo", "target": "users", "foreignKey": "user_id", "as": "author", "onDelete": "CASCADE",
    })
    assert (rel.foreign_key, rel.as_, rel.on_delete) == ("user_id", "author", "CASCADE")
    assert rel.model_dump(by_alias=True, exclude_none=True)["foreignKey"] == "user_id"


def test_table_schema_helpers():
    schema = TableSchema.model_validate({
        "table_name": "t",
        "columns": [{"name": "id", "type": "integer", "primary_key": True}, {"name": "x", "type": "text"}],
    })
    assert schema.column("x").type == "text"
    assert schema.column("missing") is None
    assert [c.name for c in schema.primary_key_columns()] == ["id"]


def test_validation_result():
    assert ValidationResult.from_errors([]).valid
    assert not ValidationResult.from_errors(["boom"]).valid


def test_query_request_includes():
    req = QueryRequest.model_validate({"include": ["author", {"association": "tags", "columns": ["name"]}]})
    assert req.include_items() == ["author", {"association": "tags", "columns": ["name"], "where": None}]
