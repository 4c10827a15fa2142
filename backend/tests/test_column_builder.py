import pytest
import sqlalchemy as sa

from core.column_builder import ColumnBuilder, is_live_timestamp
from core.exceptions import UnsupportedTypeError
from models.schema import Column


def build(**kwargs):
    return ColumnBuilder().build(Column(**kwargs), "users")


def test_nullable_defaults_to_true():
    assert build(name="bio", type="text").nullable is True
    assert build(name="bio", type="text", nullable=False).nullable is False


def test_primary_key_never_nullable():
    d = build(name="id", type="integer", primary_key=True, nullable=True)
    assert d.nullable is False
    assert d.to_column().nullable is False


def test_length_and_precision():
    assert build(name="name", type="string", length=100).type.length == 100
    price = build(name="price", type="decimal", precision=10, scale=2).type
    assert (price.precision, price.scale) == (10, 2)


def test_email_implies_validator():
    assert build(name="email", type="email").validate == {"isEmail": True}


def test_explicit_validators_win():
    d = build(name="email", type="email", validate={"isEmail": False, "len": [3, 50]})
    assert d.validate == {"isEmail": False, "len": [3, 50]}


def test_verbatim_propagation():
    d = build(name="code", type="string", unique=True, comment="ISO code", default_value="FR")
    assert (d.unique, d.comment, d.default) == (True, "ISO code", "FR")


def test_strict_unknown_type_raises():
    with pytest.raises(UnsupportedTypeError):
        ColumnBuilder(strict=True).build(Column(name="x", type="hologram"))


def test_enum_named_after_table_and_column():
    d = build(name="status", type="enum", values=["a", "b"])
    assert d.type.name == "users_status_enum"


def test_live_timestamp_default_becomes_server_default():
    col = build(name="created", type="timestamp", default_value="CURRENT_TIMESTAMP").to_column()
    assert col.default is None
    assert "CURRENT_TIMESTAMP" in str(col.server_default.arg)


@pytest.mark.parametrize("value", ["CURRENT_TIMESTAMP", "now()", "NOW()", "(getdate())", "'current_timestamp'"])
def test_is_live_timestamp(value):
    assert is_live_timestamp(value)


def test_is_live_timestamp_rejects_literals():
    assert not is_live_timestamp("2024-01-01")
    assert not is_live_timestamp(0)


def test_column_foreign_key():
    d = build(
        name="team_id", type="integer",
        foreign_key={"table": "teams", "column": "id", "on_delete": "CASCADE"},
    )
    col = d.to_column()
    fk = next(iter(col.foreign_keys))
    assert fk.target_fullname == "teams.id"
    assert fk.ondelete == "CASCADE"


def test_auto_increment_only_on_primary_key():
    assert build(name="n", type="integer", auto_increment=True).to_column().autoincrement is False
    pk = build(name="id", type="integer", primary_key=True, auto_increment=True).to_column()
    assert pk.autoincrement is True
    assert isinstance(pk.type, sa.Integer)
