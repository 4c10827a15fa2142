"""
Column Builder — one declarative column → a full column definition.

Pure transformation: resolves the concrete type, applies length / precision,
derives nullability and merges type-implied validators with explicit ones.
"""
from dataclasses import dataclass, field
from typing import Any, Optional

import sqlalchemy as sa

from core.type_mapper import resolve
from models.schema import Column, ForeignKeyRef

# Format validators implied by semantic string types
IMPLIED_VALIDATORS: dict[str, dict[str, Any]] = {
    "email": {"isEmail": True},
    "url":   {"isUrl": True},
    "ip":    {"isIP": True},
}

LIVE_TIMESTAMP_DEFAULTS = {"current_timestamp", "now", "getdate", "localtimestamp", "sysdatetime"}


def is_live_timestamp(value: Any) -> bool:
    """True for textual defaults that mean "the database's current time"."""
    if not isinstance(value, str):
        return False
    # "now()", "(getdate())", "'CURRENT_TIMESTAMP'"
    return value.strip().strip("()'").lower() in LIVE_TIMESTAMP_DEFAULTS


@dataclass
class ColumnDefinition:
    name: str
    logical_type: str
    type: sa.types.TypeEngine
    primary_key: bool = False
    nullable: bool = True
    unique: bool = False
    auto_increment: bool = False
    default: Any = None
    server_default: Optional[Any] = None     # SQL expression evaluated by the database
    comment: Optional[str] = None
    index: bool = False
    validate: dict[str, Any] = field(default_factory=dict)
    foreign_key: Optional[ForeignKeyRef] = None

    def to_column(self) -> sa.Column:
        """Render as a SQLAlchemy Column."""
        args: list[Any] = [self.name, self.type]
        if self.foreign_key:
            fk = self.foreign_key
            args.append(sa.ForeignKey(
                f"{fk.table}.{fk.column}", ondelete=fk.on_delete, onupdate=fk.on_update,
            ))

        default = self.default
        server_default = self.server_default
        if is_live_timestamp(default):
            server_default = sa.text("CURRENT_TIMESTAMP")
            default = None

        return sa.Column(
            *args,
            primary_key=self.primary_key,
            nullable=self.nullable,
            unique=self.unique or None,
            autoincrement=self.auto_increment if self.primary_key else False,
            default=default,
            server_default=server_default,
            comment=self.comment,
        )


class ColumnBuilder:
    """Builds ColumnDefinitions. ``strict`` controls unknown-type handling."""

    def __init__(self, strict: bool = False):
        self.strict = strict

    def build(self, column: Column, table_name: Optional[str] = None) -> ColumnDefinition:
        logical = (column.type or "").strip().lower()
        concrete = resolve(logical, strict=self.strict)
        enum_name = f"{table_name}_{column.name}_enum" if table_name else f"{column.name}_enum"
        sa_type = concrete.build(
            length=column.length,
            precision=column.precision,
            scale=column.scale,
            values=column.values,
            enum_name=enum_name,
        )

        # Explicit rules win on key collision
        rules = dict(IMPLIED_VALIDATORS.get(logical, {}))
        rules.update(column.validate_ or {})

        return ColumnDefinition(
            name=column.name,
            logical_type=logical,
            type=sa_type,
            primary_key=column.primary_key,
            # primary keys are never nullable
            nullable=column.nullable is not False and not column.primary_key,
            unique=column.unique,
            auto_increment=column.auto_increment,
            default=column.default_value,
            comment=column.comment,
            index=column.index,
            validate=rules,
            foreign_key=column.foreign_key,
        )
