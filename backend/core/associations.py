"""
Association kinds realized on models.

The four kinds form a closed set; each carries only the keys that make sense
for it. ``BelongsToMany`` cannot be built without a through table.
"""
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Union

DEFAULT_ON_DELETE = "SET NULL"
DEFAULT_ON_UPDATE = "CASCADE"


@dataclass(frozen=True)
class _AssociationBase:
    name: str
    source: str
    target: str
    foreign_key: str
    on_delete: str = DEFAULT_ON_DELETE
    on_update: str = DEFAULT_ON_UPDATE
    constraints: bool = True
    scope: dict[str, Any] = field(default_factory=dict)

    kind: ClassVar[str] = ""

    @property
    def is_collection(self) -> bool:
        return False

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.kind,
            "source": self.source,
            "target": self.target,
            "foreign_key": self.foreign_key,
            "on_delete": self.on_delete,
            "on_update": self.on_update,
            "constraints": self.constraints,
            "scope": dict(self.scope) or None,
        }


@dataclass(frozen=True)
class HasOne(_AssociationBase):
    """Foreign key on the target, pointing at ``source_key`` on the source."""
    source_key: Optional[str] = None

    kind: ClassVar[str] = "hasOne"

    def describe(self) -> dict[str, Any]:
        return {**super().describe(), "source_key": self.source_key}


@dataclass(frozen=True)
class HasMany(_AssociationBase):
    source_key: Optional[str] = None

    kind: ClassVar[str] = "hasMany"

    @property
    def is_collection(self) -> bool:
        return True

    def describe(self) -> dict[str, Any]:
        return {**super().describe(), "source_key": self.source_key}


@dataclass(frozen=True)
class BelongsTo(_AssociationBase):
    """Foreign key on the source, pointing at ``target_key`` on the target."""
    target_key: Optional[str] = None

    kind: ClassVar[str] = "belongsTo"

    def describe(self) -> dict[str, Any]:
        return {**super().describe(), "target_key": self.target_key}


@dataclass(frozen=True)
class BelongsToMany(_AssociationBase):
    """Junction rows in ``through``: foreign_key → source, other_key → target."""
    through: str = ""
    other_key: Optional[str] = None
    source_key: Optional[str] = None
    target_key: Optional[str] = None

    kind: ClassVar[str] = "belongsToMany"

    def __post_init__(self):
        if not self.through:
            raise ValueError(f"belongsToMany '{self.name}' requires a through table")

    @property
    def is_collection(self) -> bool:
        return True

    def describe(self) -> dict[str, Any]:
        return {
            **super().describe(),
            "through": self.through,
            "other_key": self.other_key,
            "source_key": self.source_key,
            "target_key": self.target_key,
        }


Association = Union[HasOne, HasMany, BelongsTo, BelongsToMany]

RELATION_KINDS: dict[str, type] = {
    HasOne.kind: HasOne,
    HasMany.kind: HasMany,
    BelongsTo.kind: BelongsTo,
    BelongsToMany.kind: BelongsToMany,
}

RELATION_DESCRIPTIONS = [
    {"type": "hasOne",
     "description": "One-to-one relationship where the foreign key is in the target table",
     "example": "User hasOne Profile"},
    {"type": "hasMany",
     "description": "One-to-many relationship where the foreign key is in the target table",
     "example": "User hasMany Posts"},
    {"type": "belongsTo",
     "description": "Many-to-one relationship where the foreign key is in the source table",
     "example": "Post belongsTo User"},
    {"type": "belongsToMany",
     "description": "Many-to-many relationship using a junction table",
     "example": "User belongsToMany Roles through UserRoles"},
]
