"""Pydantic schemas for declarative table, column and relation descriptions."""
from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

ReferentialAction = Literal["CASCADE", "SET NULL", "RESTRICT", "NO ACTION"]


class ForeignKeyRef(BaseModel):
    table: str
    column: str
    on_delete: Optional[ReferentialAction] = None
    on_update: Optional[ReferentialAction] = None


class Column(BaseModel):
    # name/type stay optional so validate_schema can report them instead of a 422
    name: Optional[str] = None
    type: Optional[str] = None
    primary_key: bool = False
    nullable: Optional[bool] = None
    default_value: Optional[Any] = None
    unique: bool = False
    auto_increment: bool = False
    length: Optional[int] = Field(None, gt=0)
    precision: Optional[int] = Field(None, gt=0)
    scale: Optional[int] = Field(None, ge=0)
    foreign_key: Optional[ForeignKeyRef] = None
    index: bool = False
    comment: Optional[str] = None
    validate_: Optional[dict[str, Any]] = Field(None, alias="validate")
    values: Optional[list[str]] = None   # enum members

    model_config = ConfigDict(populate_by_name=True)


class IndexSpec(BaseModel):
    name: str
    columns: list[str]
    unique: bool = False
    type: Optional[Literal["BTREE", "HASH", "GIST", "SPGIST", "GIN", "BRIN"]] = None


class ConstraintReference(BaseModel):
    table: str
    columns: list[str]


class ConstraintSpec(BaseModel):
    name: str
    type: Literal["CHECK", "UNIQUE", "FOREIGN_KEY"]
    columns: list[str] = Field(default_factory=list)
    reference: Optional[ConstraintReference] = None
    condition: Optional[str] = None


class RelationSpec(BaseModel):
    """One declared relation. ``type`` stays a plain string so unknown kinds can be reported."""
    type: str
    target: str
    foreign_key: Optional[str] = Field(None, alias="foreignKey")
    target_key: Optional[str] = Field(None, alias="targetKey")
    source_key: Optional[str] = Field(None, alias="sourceKey")
    through: Optional[str] = None
    as_: Optional[str] = Field(None, alias="as")
    on_delete: Optional[ReferentialAction] = Field(None, alias="onDelete")
    on_update: Optional[ReferentialAction] = Field(None, alias="onUpdate")
    constraints: Optional[bool] = None
    scope: Optional[dict[str, Any]] = None

    model_config = ConfigDict(populate_by_name=True)


class TableSchema(BaseModel):
    table_name: Optional[str] = None
    columns: list[Column] = Field(default_factory=list)
    relations: Optional[list[RelationSpec]] = None
    indexes: Optional[list[IndexSpec]] = None
    constraints: Optional[list[ConstraintSpec]] = None

    def column(self, name: str) -> Optional[Column]:
        return next((c for c in self.columns if c.name == name), None)

    def primary_key_columns(self) -> list[Column]:
        return [c for c in self.columns if c.primary_key]


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: list[str]) -> "ValidationResult":
        return cls(valid=not errors, errors=errors)
