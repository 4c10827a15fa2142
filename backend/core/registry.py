"""
Model registry — one per live database connection.

A Model is the handle the rest of the core works with: the SQLAlchemy Table,
the per-column definitions (validators included) and the associations attached
by the relation graph builder or by FK auto-association.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import sqlalchemy as sa

from core.associations import Association
from core.column_builder import ColumnDefinition
from core.exceptions import ModelNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class ModelOptions:
    table_name: str
    timestamps: bool = False
    paranoid: bool = False
    underscored: bool = False
    freeze_table_name: bool = True

    @property
    def created_at(self) -> str:
        return "created_at" if self.underscored else "createdAt"

    @property
    def updated_at(self) -> str:
        return "updated_at" if self.underscored else "updatedAt"

    @property
    def deleted_at(self) -> str:
        return "deleted_at" if self.underscored else "deletedAt"


@dataclass
class Model:
    name: str
    table: sa.Table
    columns: dict[str, ColumnDefinition]
    options: ModelOptions
    associations: dict[str, Association] = field(default_factory=dict)
    discovered: bool = False

    @property
    def table_name(self) -> str:
        return self.table.name

    @property
    def primary_key(self) -> Optional[str]:
        """First primary key column, or ``id`` when the table has one but no declared key."""
        pk = list(self.table.primary_key.columns)
        if pk:
            return pk[0].name
        return "id" if "id" in self.table.c else None

    def has_column(self, name: str) -> bool:
        return name in self.table.c

    def add_association(self, association: Association) -> None:
        self.associations[association.name] = association

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "table_name": self.table_name,
            "attributes": [c.name for c in self.table.columns],
            "associations": [a.describe() for a in self.associations.values()],
            "discovered": self.discovered,
        }


class ModelRegistry:
    """Table name → Model, backed by a single MetaData."""

    def __init__(self):
        self.metadata = sa.MetaData()
        self._models: dict[str, Model] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._models

    def __len__(self) -> int:
        return len(self._models)

    def names(self) -> list[str]:
        return list(self._models.keys())

    def models(self) -> dict[str, Model]:
        return dict(self._models)

    def get(self, name: str) -> Model:
        model = self._models.get(name)
        if model is None:
            raise ModelNotFoundError(name, self.names())
        return model

    def find(self, name: str) -> Optional[Model]:
        return self._models.get(name)

    def release_table(self, table_name: str) -> None:
        """Drop a table definition from the metadata so it can be redefined."""
        existing = self.metadata.tables.get(table_name)
        if existing is not None:
            self.metadata.remove(existing)

    def register(self, model: Model) -> Model:
        # last write wins, no merge
        if model.name in self._models:
            logger.debug("Replacing model '%s' in registry", model.name)
        self._models[model.name] = model
        return model

    def remove(self, name: str) -> None:
        """Unregister ``name`` and drop every association that points at it."""
        model = self._models.pop(name, None)
        if model is None:
            return
        self.release_table(model.table_name)
        for other in self._models.values():
            stale = [
                a.name for a in other.associations.values()
                if a.target == name or getattr(a, "through", None) == name
            ]
            for assoc_name in stale:
                del other.associations[assoc_name]

    def restore(self, model: Model) -> Model:
        """Put back ``model`` in place of whatever replaced it, keeping associations aimed at it."""
        current = self._models.get(model.name)
        if current is not None:
            self.release_table(current.table_name)
        self.release_table(model.table_name)
        model.table = model.table.to_metadata(self.metadata)
        self._models[model.name] = model
        return model

    def clear(self) -> None:
        self._models.clear()
        self.metadata.clear()

    def association_count(self) -> int:
        return sum(len(m.associations) for m in self._models.values())
