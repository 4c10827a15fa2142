"""
Relation validation and relation-graph construction.

validate_relations() is a pure, exhaustive check over a batch of schemas and
runs before anything is built. RelationGraphBuilder.establish() works in two
phases: register every model first (so forward and self references resolve
regardless of declaration order), then plan every association against the
populated registry and attach them.

Strict mode plans the whole batch before attaching anything, so one bad
relation leaves no association behind. Lenient mode attaches every relation it
can and records the rest in ``skipped`` with the reason.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import sqlalchemy as sa

from core.associations import (
    DEFAULT_ON_DELETE,
    DEFAULT_ON_UPDATE,
    RELATION_KINDS,
    Association,
    BelongsTo,
    BelongsToMany,
    HasMany,
    HasOne,
)
from core.exceptions import ModelNotFoundError, RelationValidationError, UnknownRelationTypeError
from core.model_builder import ConversionOptions, ModelBuilder
from core.naming import key_name, singularize
from core.registry import Model, ModelRegistry
from core.type_mapper import is_known, resolve
from models.schema import RelationSpec, TableSchema

logger = logging.getLogger(__name__)


def association_name(relation: RelationSpec) -> str:
    """``as`` when given; otherwise the singular target for to-one kinds, the target for to-many."""
    if relation.as_:
        return relation.as_
    if relation.type in (BelongsTo.kind, HasOne.kind):
        return singularize(relation.target)
    return relation.target


def _default_key(schema: Optional[TableSchema]) -> Optional[str]:
    if schema is None:
        return None
    pk = schema.primary_key_columns()
    if pk:
        return pk[0].name
    return "id" if schema.column("id") else None


def _inverse_key(source: str, relation: RelationSpec, by_name: dict[str, TableSchema]) -> Optional[str]:
    """The foreign key declared by the target's mirror belongsToMany through the same table."""
    target = by_name.get(relation.target)
    for rel in (target.relations or []) if target else []:
        # a self-referencing relation is not its own mirror
        if rel is relation:
            continue
        if rel.type == BelongsToMany.kind and rel.target == source and rel.through == relation.through:
            return rel.foreign_key
    return None


def junction_keys(source: str, relation: RelationSpec, by_name: dict[str, TableSchema]) -> tuple[str, str]:
    """(foreign_key, other_key) of a belongsToMany on its through table."""
    foreign_key = relation.foreign_key or key_name(source)
    other_key = relation.target_key or _inverse_key(source, relation, by_name) or key_name(relation.target)
    return foreign_key, other_key


def _same_logical_type(a: str, b: str) -> bool:
    if is_known(a) and is_known(b):
        return resolve(a).name == resolve(b).name
    return a.strip().lower() == b.strip().lower()


# ── Validation ────────────────────────────────────────────────────────────────

def validate_relations(schemas: list[TableSchema]) -> list[str]:
    """Check every relation of every schema; returns all errors (empty = valid)."""
    errors: list[str] = []
    by_name = {s.table_name: s for s in schemas if s.table_name}

    def check_types(source: str, holder: TableSchema, key: str, ref: Optional[TableSchema], ref_key: Optional[str]):
        fk_col = holder.column(key)
        ref_col = ref.column(ref_key) if ref is not None and ref_key else None
        if fk_col is None or ref_col is None or not fk_col.type or not ref_col.type:
            return
        if not _same_logical_type(fk_col.type, ref_col.type):
            errors.append(
                f"{source}: Foreign key '{holder.table_name}.{key}' ({fk_col.type}) does not match "
                f"'{ref.table_name}.{ref_key}' ({ref_col.type})"
            )

    for schema in schemas:
        source = schema.table_name
        names: set[str] = set()

        for index, rel in enumerate(schema.relations or []):
            if rel.type not in RELATION_KINDS:
                errors.append(f"{source}: Relation {index} has unknown type '{rel.type}'")
                continue

            target = by_name.get(rel.target)
            if target is None:
                errors.append(f"{source}: Relation {index} references non-existent table '{rel.target}'")

            if rel.type == BelongsToMany.kind:
                through = None
                if not rel.through:
                    errors.append(f"{source}: belongsToMany relation to '{rel.target}' requires 'through' property")
                else:
                    through = by_name.get(rel.through)
                    if through is None:
                        errors.append(
                            f"{source}: Through table '{rel.through}' for relation to '{rel.target}' not found"
                        )
                if through is not None:
                    for label, key in (("Foreign key", rel.foreign_key), ("Target key", rel.target_key)):
                        if key and through.column(key) is None:
                            errors.append(f"{source}: {label} '{key}' not found in through table '{through.table_name}'")
                    if rel.foreign_key:
                        check_types(source, through, rel.foreign_key, schema, rel.source_key or _default_key(schema))
                    if rel.target_key:
                        check_types(source, through, rel.target_key, target, _default_key(target))
                    foreign_key, other_key = junction_keys(source, rel, by_name)
                    if foreign_key == other_key:
                        errors.append(
                            f"{source}: belongsToMany relation to '{rel.target}' uses '{foreign_key}' for both "
                            f"sides of '{rel.through}'; set 'targetKey'"
                        )
            else:
                # belongsTo keeps the key on the source, hasOne/hasMany on the target
                holder = schema if rel.type == BelongsTo.kind else target
                if rel.foreign_key and holder is not None and holder.column(rel.foreign_key) is None:
                    errors.append(f"{source}: Foreign key '{rel.foreign_key}' not found in '{holder.table_name}'")
                if rel.target_key and target is not None and target.column(rel.target_key) is None:
                    errors.append(f"{source}: Target key '{rel.target_key}' not found in '{rel.target}'")
                if rel.source_key and schema.column(rel.source_key) is None:
                    errors.append(f"{source}: Source key '{rel.source_key}' not found in '{source}'")

                if rel.foreign_key and holder is not None:
                    if rel.type == BelongsTo.kind:
                        check_types(source, holder, rel.foreign_key, target, rel.target_key or _default_key(target))
                    else:
                        check_types(source, holder, rel.foreign_key, schema, rel.source_key or _default_key(schema))

            name = association_name(rel)
            if name in names:
                errors.append(f"{source}: Association name '{name}' is used more than once")
            names.add(name)

    return errors


# ── Graph building ────────────────────────────────────────────────────────────

@dataclass
class SkippedRelation:
    source: str
    index: int
    type: str
    target: str
    reason: str


class RelationGraphBuilder:
    def __init__(self, options: Optional[ConversionOptions] = None, model_builder: Optional[ModelBuilder] = None):
        self.options = options or ConversionOptions()
        self.model_builder = model_builder or ModelBuilder(self.options)
        self.skipped: list[SkippedRelation] = []

    @property
    def strict(self) -> bool:
        return self.options.strict_validation

    def establish(self, schemas: list[TableSchema], registry: ModelRegistry) -> ModelRegistry:
        self.skipped = []

        # a junction-less many-to-many can never be realized, in either mode
        for schema in schemas:
            for spec in schema.relations or []:
                if spec.type == BelongsToMany.kind and not spec.through:
                    raise RelationValidationError(
                        f"belongsToMany relation requires 'through' table for {schema.table_name} -> {spec.target}",
                        [f"{schema.table_name}: belongsToMany relation to '{spec.target}' requires 'through' property"],
                    )

        # Phase 1: every model, no relations
        for schema in schemas:
            self.model_builder.build(schema, registry)

        # Phase 2: plan against the full registry
        by_name = {s.table_name: s for s in schemas}
        plan: list[Association] = []
        taken: dict[str, set[str]] = {}

        for schema in schemas:
            source = registry.get(schema.table_name)
            for index, spec in enumerate(schema.relations or []):
                try:
                    association = self._plan(source, spec, by_name, registry)
                    names = taken.setdefault(source.name, set(source.associations))
                    if association.name in names:
                        raise RelationValidationError(
                            f"Association '{association.name}' already defined on '{source.name}'"
                        )
                    names.add(association.name)
                    plan.append(association)
                except (UnknownRelationTypeError, ModelNotFoundError, RelationValidationError) as exc:
                    if self.strict:
                        raise
                    logger.warning("Skipping relation %d of '%s': %s", index, source.name, exc)
                    self.skipped.append(SkippedRelation(
                        source=source.name, index=index, type=spec.type, target=spec.target, reason=str(exc),
                    ))

        for association in plan:
            self._apply(association, registry)

        logger.info(
            "Established %d relation(s) across %d model(s) (%d skipped)",
            len(plan), len(schemas), len(self.skipped),
        )
        return registry

    def _plan(
        self,
        source: Model,
        spec: RelationSpec,
        by_name: dict[str, TableSchema],
        registry: ModelRegistry,
    ) -> Association:
        kind = RELATION_KINDS.get(spec.type)
        if kind is None:
            raise UnknownRelationTypeError(spec.type, source.name)

        target = registry.find(spec.target)
        if target is None:
            raise ModelNotFoundError(spec.target, registry.names())

        common = dict(
            name=association_name(spec),
            source=source.name,
            target=target.name,
            on_delete=spec.on_delete or DEFAULT_ON_DELETE,
            on_update=spec.on_update or DEFAULT_ON_UPDATE,
            constraints=spec.constraints is not False,
            scope=dict(spec.scope or {}),
        )

        if kind is BelongsTo:
            return BelongsTo(
                foreign_key=spec.foreign_key or key_name(target.name),
                target_key=spec.target_key or target.primary_key,
                **common,
            )
        if kind is HasOne or kind is HasMany:
            return kind(
                foreign_key=spec.foreign_key or key_name(source.name),
                source_key=spec.source_key or source.primary_key,
                **common,
            )

        through = registry.find(spec.through)
        if through is None:
            raise ModelNotFoundError(spec.through, registry.names())
        foreign_key, other_key = junction_keys(source.name, spec, by_name)
        if foreign_key == other_key:
            raise RelationValidationError(
                f"belongsToMany '{common['name']}' on '{source.name}' uses '{foreign_key}' for both sides of "
                f"'{through.name}'; set 'targetKey'"
            )
        return BelongsToMany(
            through=through.name,
            foreign_key=foreign_key,
            other_key=other_key,
            source_key=spec.source_key or source.primary_key,
            target_key=target.primary_key,
            **common,
        )

    def _apply(self, association: Association, registry: ModelRegistry) -> None:
        source = registry.get(association.source)
        target = registry.get(association.target)

        if isinstance(association, BelongsTo):
            links = [(source, association.foreign_key, target, association.target_key)]
        elif isinstance(association, (HasOne, HasMany)):
            links = [(target, association.foreign_key, source, association.source_key)]
        elif isinstance(association, BelongsToMany):
            through = registry.get(association.through)
            links = [
                (through, association.foreign_key, source, association.source_key),
                (through, association.other_key, target, association.target_key),
            ]
        else:
            raise TypeError(f"Unhandled association kind: {type(association).__name__}")

        for holder, key, referenced, ref_key in links:
            _ensure_key(holder, key, referenced, ref_key, association)
        source.add_association(association)


def _ensure_key(holder: Model, key: str, referenced: Model, ref_key: Optional[str], association: Association) -> None:
    """Make sure ``holder.key`` exists and, when constraints are on, references ``referenced.ref_key``."""
    ref_col = referenced.table.c.get(ref_key) if ref_key else None

    if key not in holder.table.c:
        col_type = ref_col.type if ref_col is not None else sa.Integer()
        holder.table.append_column(sa.Column(key, col_type, nullable=True))
        logger.debug("Added key column '%s.%s' for association '%s'", holder.table_name, key, association.name)

    if not association.constraints or ref_col is None:
        return
    target_spec = f"{referenced.table_name}.{ref_key}"
    for fk in holder.table.foreign_keys:
        if fk.parent.name == key and fk.target_fullname == target_spec:
            return
    holder.table.append_constraint(sa.ForeignKeyConstraint(
        [key], [target_spec], ondelete=association.on_delete, onupdate=association.on_update,
    ))


# ── Example ───────────────────────────────────────────────────────────────────

_EXAMPLE = [
    {
        "table_name": "users",
        "columns": [
            {"name": "id", "type": "integer", "primary_key": True, "auto_increment": True},
            {"name": "email", "type": "email", "unique": True, "nullable": False},
            {"name": "name", "type": "string", "length": 100, "nullable": False},
        ],
        "relations": [
            {"type": "hasMany", "target": "posts", "foreignKey": "user_id", "as": "posts"},
            {"type": "hasOne", "target": "profiles", "foreignKey": "user_id", "as": "profile"},
            {"type": "belongsToMany", "target": "roles", "through": "user_roles", "foreignKey": "user_id", "as": "roles"},
        ],
    },
    {
        "table_name": "posts",
        "columns": [
            {"name": "id", "type": "integer", "primary_key": True, "auto_increment": True},
            {"name": "title", "type": "string", "length": 255, "nullable": False},
            {"name": "content", "type": "text"},
            {"name": "user_id", "type": "integer", "nullable": False},
            {"name": "category_id", "type": "integer"},
        ],
        "relations": [
            {"type": "belongsTo", "target": "users", "foreignKey": "user_id", "as": "author"},
            {"type": "belongsTo", "target": "categories", "foreignKey": "category_id", "as": "category"},
            {"type": "belongsToMany", "target": "tags", "through": "post_tags", "foreignKey": "post_id", "as": "tags"},
        ],
    },
    {
        "table_name": "profiles",
        "columns": [
            {"name": "id", "type": "integer", "primary_key": True, "auto_increment": True},
            {"name": "user_id", "type": "integer", "unique": True, "nullable": False},
            {"name": "bio", "type": "text"},
            {"name": "avatar_url", "type": "url"},
        ],
        "relations": [
            {"type": "belongsTo", "target": "users", "foreignKey": "user_id", "as": "user"},
        ],
    },
    {
        "table_name": "categories",
        "columns": [
            {"name": "id", "type": "integer", "primary_key": True, "auto_increment": True},
            {"name": "name", "type": "string", "length": 100, "unique": True, "nullable": False},
            {"name": "parent_id", "type": "integer"},
        ],
        "relations": [
            {"type": "hasMany", "target": "posts", "foreignKey": "category_id", "as": "posts"},
            {"type": "hasMany", "target": "categories", "foreignKey": "parent_id", "as": "children"},
            {"type": "belongsTo", "target": "categories", "foreignKey": "parent_id", "as": "parent"},
        ],
    },
    {
        "table_name": "roles",
        "columns": [
            {"name": "id", "type": "integer", "primary_key": True, "auto_increment": True},
            {"name": "name", "type": "string", "length": 50, "unique": True, "nullable": False},
            {"name": "permissions", "type": "json"},
        ],
        "relations": [
            {"type": "belongsToMany", "target": "users", "through": "user_roles", "foreignKey": "role_id", "as": "users"},
        ],
    },
    {
        "table_name": "tags",
        "columns": [
            {"name": "id", "type": "integer", "primary_key": True, "auto_increment": True},
            {"name": "name", "type": "string", "length": 50, "unique": True, "nullable": False},
            {"name": "color", "type": "string", "length": 7},
        ],
        "relations": [
            {"type": "belongsToMany", "target": "posts", "through": "post_tags", "foreignKey": "tag_id", "as": "posts"},
        ],
    },
    {
        "table_name": "user_roles",
        "columns": [
            {"name": "user_id", "type": "integer", "primary_key": True},
            {"name": "role_id", "type": "integer", "primary_key": True},
            {"name": "granted_at", "type": "timestamp", "default_value": "CURRENT_TIMESTAMP"},
        ],
    },
    {
        "table_name": "post_tags",
        "columns": [
            {"name": "post_id", "type": "integer", "primary_key": True},
            {"name": "tag_id", "type": "integer", "primary_key": True},
            {"name": "added_at", "type": "timestamp", "default_value": "CURRENT_TIMESTAMP"},
        ],
    },
]


def example_schemas() -> list[TableSchema]:
    """A blog: users, posts, profiles, self-referencing categories, roles and tags via junctions."""
    return [TableSchema.model_validate(s) for s in _EXAMPLE]
