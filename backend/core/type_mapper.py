"""
Type Mapper — logical column type names → SQLAlchemy column types.

The concrete types are SQLAlchemy's generic types, so the same definition
compiles to the right DDL on SQLite, PostgreSQL, MySQL and MSSQL. Where a
dialect needs something special (JSONB, ARRAY, BIGINT auto-increment on SQLite)
a ``with_variant`` is attached here once.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.types import UserDefinedType

from core.exceptions import UnsupportedTypeError

logger = logging.getLogger(__name__)

DEFAULT_STRING_LENGTH = 255


class Geometry(UserDefinedType):
    """Spatial column. Renders GEOMETRY / GEOGRAPHY verbatim."""

    cache_ok = True

    def __init__(self, kind: str = "GEOMETRY"):
        self.kind = kind.upper()

    def get_col_spec(self, **kw) -> str:
        return self.kind


@dataclass(frozen=True)
class ConcreteType:
    """A resolved type: family decides which parameters apply."""
    name: str
    family: str                                  # integer, decimal, string, char, text, ...
    factory: Callable[..., sa.types.TypeEngine]

    @property
    def accepts_length(self) -> bool:
        return self.family in ("string", "char")

    @property
    def accepts_precision(self) -> bool:
        return self.family == "decimal"

    def build(
        self,
        length: Optional[int] = None,
        precision: Optional[int] = None,
        scale: Optional[int] = None,
        values: Optional[list[str]] = None,
        enum_name: Optional[str] = None,
    ) -> sa.types.TypeEngine:
        """Instantiate the SQLAlchemy type, parameterized where the family allows it."""
        if self.accepts_length and length:
            return self.factory(length)
        if self.accepts_precision and precision:
            if scale is not None:
                return sa.Numeric(precision, scale)
            return sa.Numeric(precision)
        if self.family == "enum":
            if values:
                return sa.Enum(*values, name=enum_name or "enum_values")
            return sa.String(DEFAULT_STRING_LENGTH)
        return self.factory()


def _string(length: int = DEFAULT_STRING_LENGTH) -> sa.types.TypeEngine:
    return sa.String(length)


def _char(length: int = DEFAULT_STRING_LENGTH) -> sa.types.TypeEngine:
    return sa.CHAR(length)


def _bigint() -> sa.types.TypeEngine:
    # SQLite only auto-increments INTEGER PRIMARY KEY
    return sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _jsonb() -> sa.types.TypeEngine:
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _array() -> sa.types.TypeEngine:
    return sa.JSON().with_variant(postgresql.ARRAY(sa.String()), "postgresql")


_INTEGER = ConcreteType("integer", "integer", sa.Integer)
_DECIMAL = ConcreteType("decimal", "decimal", sa.Numeric)
_STRING = ConcreteType("string", "string", _string)
_TEXT = ConcreteType("text", "text", sa.Text)
_DATETIME = ConcreteType("datetime", "datetime", sa.DateTime)
_BOOLEAN = ConcreteType("boolean", "boolean", sa.Boolean)
_BINARY = ConcreteType("binary", "binary", sa.LargeBinary)

# ── Type table ────────────────────────────────────────────────────────────────
# Aliases share one ConcreteType so resolve("int") is resolve("integer").
TYPE_TABLE: dict[str, ConcreteType] = {
    # Numeric
    "integer":    _INTEGER,
    "int":        _INTEGER,
    "smallint":   ConcreteType("smallint", "integer", sa.SmallInteger),
    "bigint":     ConcreteType("bigint", "integer", _bigint),
    "float":      ConcreteType("float", "float", sa.Float),
    "double":     ConcreteType("double", "float", sa.Double),
    "decimal":    _DECIMAL,
    "numeric":    _DECIMAL,
    "real":       ConcreteType("real", "float", sa.REAL),
    # String
    "string":     _STRING,
    "varchar":    _STRING,
    "char":       ConcreteType("char", "char", _char),
    "text":       _TEXT,
    "mediumtext": _TEXT,
    "longtext":   _TEXT,
    "tinytext":   ConcreteType("tinytext", "tinytext", _string),
    # Semantic strings; format validators are attached by the column builder
    "email":      _STRING,
    "url":        _STRING,
    "ip":         _STRING,
    # Date / time
    "timestamp":  _DATETIME,
    "datetime":   _DATETIME,
    "date":       ConcreteType("date", "date", sa.Date),
    "time":       ConcreteType("time", "time", sa.Time),
    # Boolean
    "boolean":    _BOOLEAN,
    "bool":       _BOOLEAN,
    "tinyint":    _BOOLEAN,
    # Binary
    "blob":       _BINARY,
    "binary":     _BINARY,
    "varbinary":  _BINARY,
    # JSON
    "json":       ConcreteType("json", "json", sa.JSON),
    "jsonb":      ConcreteType("jsonb", "json", _jsonb),
    # Misc
    "uuid":       ConcreteType("uuid", "uuid", sa.Uuid),
    "enum":       ConcreteType("enum", "enum", _string),
    "array":      ConcreteType("array", "array", _array),
    "geometry":   ConcreteType("geometry", "spatial", lambda: Geometry("GEOMETRY")),
    "geography":  ConcreteType("geography", "spatial", lambda: Geometry("GEOGRAPHY")),
}

FALLBACK_TYPE = _STRING


def resolve(logical_type: str, strict: bool = False) -> ConcreteType:
    """Resolve a logical type name (case-insensitive).

    Unknown names raise UnsupportedTypeError in strict mode and fall back to a
    plain string otherwise.
    """
    key = (logical_type or "").strip().lower()
    concrete = TYPE_TABLE.get(key)
    if concrete is None:
        if strict:
            raise UnsupportedTypeError(logical_type)
        logger.debug("Unknown column type %r, falling back to string", logical_type)
        return FALLBACK_TYPE
    return concrete


def is_known(logical_type: str) -> bool:
    return (logical_type or "").strip().lower() in TYPE_TABLE


def available_types() -> list[str]:
    return list(TYPE_TABLE.keys())
