import pytest
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite

from core.exceptions import UnsupportedTypeError
from core.type_mapper import Geometry, available_types, is_known, resolve


def test_aliases_share_one_type():
    assert resolve("int") is resolve("integer")
    assert resolve("varchar") is resolve("string")
    assert resolve("numeric") is resolve("decimal")
    assert resolve("bool") is resolve("boolean")


def test_lookup_is_case_insensitive():
    assert resolve("VARCHAR").name == "string"
    assert resolve("  Timestamp ").name == "datetime"


def test_unknown_type_strict_raises():
    with pytest.raises(UnsupportedTypeError) as exc:
        resolve("money_bags", strict=True)
    assert "money_bags" in exc.value.message


def test_unknown_type_lenient_falls_back_to_string():
    concrete = resolve("money_bags")
    assert concrete.name == "string"
    assert isinstance(concrete.build(), sa.String)


def test_semantic_strings_map_to_string():
    for logical in ("email", "url", "ip"):
        assert resolve(logical).name == "string"


def test_length_applies_to_string_only():
    assert resolve("string").build(length=100).length == 100
    assert resolve("char").build(length=2).length == 2
    assert isinstance(resolve("integer").build(length=100), sa.Integer)


def test_precision_and_scale():
    t = resolve("decimal").build(precision=10, scale=2)
    assert (t.precision, t.scale) == (10, 2)
    assert resolve("decimal").build(precision=8).precision == 8


def test_enum_with_values():
    t = resolve("enum").build(values=["draft", "live"], enum_name="posts_status_enum")
    assert isinstance(t, sa.Enum)
    assert t.enums == ["draft", "live"]
    assert isinstance(resolve("enum").build(), sa.String)


def test_bigint_compiles_per_dialect():
    t = resolve("bigint").build()
    assert t.compile(dialect=sqlite.dialect()) == "INTEGER"
    assert t.compile(dialect=postgresql.dialect()) == "BIGINT"


def test_jsonb_variant_on_postgres():
    t = resolve("jsonb").build()
    assert t.compile(dialect=postgresql.dialect()) == "JSONB"
    assert t.compile(dialect=sqlite.dialect()) == "JSON"


def test_geometry_renders_verbatim():
    assert isinstance(resolve("geography").build(), Geometry)
    assert resolve("geometry").build().get_col_spec() == "GEOMETRY"


def test_available_types():
    types = available_types()
    assert len(types) == 36
    assert {"integer", "jsonb", "geography", "uuid", "tinytext"} <= set(types)
    assert is_known("Email")
    assert not is_known("nope")
