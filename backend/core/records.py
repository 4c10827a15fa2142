"""
Record access over registry models — query with eager-loaded associations,
insert / update / delete with column validators applied.

All statements are SQLAlchemy Core against the model's Table; associations are
loaded with one extra IN (...) query per include, never per row.
"""
import logging
from collections import defaultdict
from typing import Any, Optional, Union

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from core.associations import Association, BelongsTo, BelongsToMany, HasMany, HasOne
from core.exceptions import QueryError, RecordValidationError
from core.registry import Model, ModelRegistry
from core.validators import check_row

logger = logging.getLogger(__name__)

MAX_LIMIT = 1000

_OPERATORS = {
    "eq":      lambda c, v: c.is_(None) if v is None else c == v,
    "ne":      lambda c, v: c.is_not(None) if v is None else c != v,
    "gt":      lambda c, v: c > v,
    "gte":     lambda c, v: c >= v,
    "lt":      lambda c, v: c < v,
    "lte":     lambda c, v: c <= v,
    "like":    lambda c, v: c.like(v),
    "notLike": lambda c, v: c.not_like(v),
    "iLike":   lambda c, v: c.ilike(v),
    "in":      lambda c, v: c.in_(list(v)),
    "notIn":   lambda c, v: c.not_in(list(v)),
    "is":      lambda c, v: c.is_(v),
    "not":     lambda c, v: c.is_not(v),
    "between": lambda c, v: c.between(v[0], v[1]),
}


def clean(values: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Drop keys whose value is an empty object; ``{}`` carries no condition or data."""
    return {k: v for k, v in (values or {}).items() if not (isinstance(v, dict) and not v)}


def _column(model: Model, name: str) -> sa.Column:
    column = model.table.c.get(name)
    if column is None:
        raise QueryError(f"Unknown column '{name}' on '{model.name}'")
    return column


def _conditions(model: Model, where: Optional[dict[str, Any]]) -> list[Any]:
    conditions = []
    for key, value in clean(where).items():
        bare = key.lstrip("$")
        if bare in ("or", "and"):
            if not isinstance(value, list):
                raise QueryError(f"'{key}' expects a list of conditions")
            parts = [sa.and_(*_conditions(model, w)) for w in value if clean(w)]
            if parts:
                conditions.append(sa.or_(*parts) if bare == "or" else sa.and_(*parts))
            continue

        column = _column(model, key)
        if isinstance(value, dict):
            for op, operand in value.items():
                fn = _OPERATORS.get(op.lstrip("$"))
                if fn is None:
                    raise QueryError(f"Unknown operator '{op}' on '{key}'")
                conditions.append(fn(column, operand))
        elif isinstance(value, list):
            conditions.append(column.in_(value))
        else:
            conditions.append(_OPERATORS["eq"](column, value))
    return conditions


def _live(model: Model) -> list[Any]:
    """Excludes soft-deleted rows on paranoid models."""
    if model.options.paranoid and model.options.deleted_at in model.table.c:
        return [model.table.c[model.options.deleted_at].is_(None)]
    return []


def _scope(model: Model, association: Association) -> list[Any]:
    return [_column(model, k) == v for k, v in (association.scope or {}).items()]


def _order_by(model: Model, order: Any) -> list[Any]:
    clauses = []
    for item in order or []:
        if isinstance(item, str):
            desc = item.startswith("-")
            name, direction = item.lstrip("-"), "DESC" if desc else "ASC"
        elif isinstance(item, (list, tuple)) and item:
            name, direction = item[0], (item[1] if len(item) > 1 else "ASC")
        else:
            raise QueryError(f"Invalid order item: {item!r}")
        column = _column(model, name)
        clauses.append(column.desc() if str(direction).upper() == "DESC" else column.asc())
    return clauses


def _rows(engine: Engine, stmt) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        return [dict(r._mapping) for r in conn.execute(stmt)]


# ── Query ─────────────────────────────────────────────────────────────────────

IncludeItem = Union[str, dict[str, Any]]


def _normalize_includes(includes: Optional[list[IncludeItem]], columns: Optional[list[str]]) -> dict[str, dict]:
    """include entries and ``assoc.col`` column references → {association: {columns, where}}."""
    result: dict[str, dict] = {}
    for item in includes or []:
        if isinstance(item, str):
            result.setdefault(item, {"columns": None, "where": None})
        elif isinstance(item, dict) and (item.get("association") or item.get("as")):
            name = item.get("association") or item.get("as")
            result[name] = {"columns": item.get("columns"), "where": item.get("where")}
        else:
            raise QueryError(f"Invalid include: {item!r}")
    for col in columns or []:
        if "." in col:
            name, attr = col.split(".", 1)
            entry = result.setdefault(name, {"columns": [], "where": None})
            if entry["columns"] is not None:
                entry["columns"].append(attr)
    return result


def _select_columns(model: Model, names: Optional[list[str]], required: set[str]) -> list[sa.Column]:
    if not names:
        return list(model.table.columns)
    wanted = list(dict.fromkeys([*names, *sorted(required)]))
    return [_column(model, n) for n in wanted]


def _project(row: dict[str, Any], names: Optional[list[str]]) -> dict[str, Any]:
    if not names:
        return row
    return {k: v for k, v in row.items() if k in names}


def _link_keys(association: Association) -> tuple[str, str]:
    """(key on the source row, key on the loaded row used to group)."""
    if isinstance(association, BelongsTo):
        return association.foreign_key, association.target_key
    if isinstance(association, (HasOne, HasMany)):
        return association.source_key, association.foreign_key
    return association.source_key, "__through_key"


def _load(
    association: Association,
    rows: list[dict[str, Any]],
    registry: ModelRegistry,
    engine: Engine,
    spec: dict,
) -> None:
    target = registry.get(association.target)
    local_key, remote_key = _link_keys(association)
    keys = {r.get(local_key) for r in rows} - {None}
    if not keys:
        for r in rows:
            r[association.name] = [] if association.is_collection else None
        return

    cols = spec.get("columns")
    filters = _live(target) + _scope(target, association) + _conditions(target, spec.get("where"))

    if isinstance(association, BelongsToMany):
        through = registry.get(association.through).table
        join_col = through.c[association.foreign_key].label("__through_key")
        selected = _select_columns(target, cols, set())
        stmt = (
            sa.select(*selected, join_col)
            .select_from(target.table.join(
                through, through.c[association.other_key] == target.table.c[association.target_key]
            ))
            .where(through.c[association.foreign_key].in_(keys), *filters)
        )
    else:
        selected = _select_columns(target, cols, {remote_key})
        stmt = sa.select(*selected).where(target.table.c[remote_key].in_(keys), *filters)

    grouped: dict[Any, list] = defaultdict(list)
    for loaded in _rows(engine, stmt):
        group = loaded.pop("__through_key") if isinstance(association, BelongsToMany) else loaded.get(remote_key)
        grouped[group].append(_project(loaded, cols))

    for r in rows:
        matches = grouped.get(r.get(local_key), [])
        if association.is_collection:
            r[association.name] = matches
        else:
            r[association.name] = matches[0] if matches else None


def find_all(
    model: Model,
    registry: ModelRegistry,
    engine: Engine,
    columns: Optional[list[str]] = None,
    where: Optional[dict[str, Any]] = None,
    include: Optional[list[IncludeItem]] = None,
    order: Optional[list] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> list[dict[str, Any]]:
    """Query ``model`` with optional projection, filters, eager includes and paging."""
    includes = _normalize_includes(include, columns)
    own_cols = [c for c in (columns or []) if "." not in c] or None
    if columns and own_cols is None:
        # only association columns were asked for
        own_cols = []

    associations: list[tuple[Association, dict]] = []
    for name, spec in includes.items():
        association = model.associations.get(name)
        if association is None:
            available = ", ".join(sorted(model.associations)) or "none"
            raise QueryError(f"Unknown association '{name}' on '{model.name}' (available: {available})")
        associations.append((association, spec))

    needed = {_link_keys(a)[0] for a, _ in associations} - {None}
    selected = _select_columns(model, own_cols, needed)

    stmt = sa.select(*selected).where(*_live(model), *_conditions(model, where))
    stmt = stmt.order_by(*_order_by(model, order))
    limit = MAX_LIMIT if limit is None else min(max(int(limit), 0), MAX_LIMIT)
    stmt = stmt.limit(limit)
    if offset:
        stmt = stmt.offset(max(int(offset), 0))

    rows = _rows(engine, stmt)
    for association, spec in associations:
        _load(association, rows, registry, engine, spec)

    if own_cols is not None:
        keep = set(own_cols) | {a.name for a, _ in associations}
        rows = [{k: v for k, v in r.items() if k in keep} for r in rows]
    logger.debug("Query on '%s' returned %d row(s)", model.name, len(rows))
    return rows


# ── Writes ────────────────────────────────────────────────────────────────────

def _required(model: Model) -> set[str]:
    required = set()
    for column in model.table.columns:
        if column.nullable or column.default is not None or column.server_default is not None:
            continue
        if column.primary_key and column.autoincrement is not False:
            continue
        required.add(column.name)
    return required


def _check(model: Model, data: dict[str, Any], partial: bool) -> None:
    for key in data:
        _column(model, key)
    errors = check_row(model.columns, data, partial=partial, required=None if partial else _required(model))
    if errors:
        raise RecordValidationError(f"Validation failed for '{model.name}'", errors)


def insert(model: Model, engine: Engine, data: dict[str, Any]) -> dict[str, Any]:
    """Insert one row after validation; returns the stored row when it can be read back."""
    data = clean(data)
    _check(model, data, partial=False)

    with engine.begin() as conn:
        result = conn.execute(model.table.insert().values(**data))
        pk_values = result.inserted_primary_key

    pk_cols = list(model.table.primary_key.columns)
    if not pk_cols or pk_values is None or any(v is None for v in pk_values):
        return data
    stmt = sa.select(model.table).where(*[c == v for c, v in zip(pk_cols, pk_values)])
    rows = _rows(engine, stmt)
    return rows[0] if rows else data


def update(model: Model, engine: Engine, data: dict[str, Any], where: Optional[dict[str, Any]]) -> int:
    """Update rows matching ``where`` (required). Returns the number of rows affected."""
    data = clean(data)
    conditions = _conditions(model, where)
    if not conditions:
        raise QueryError("A where clause is required for update")
    if not data:
        raise QueryError("No data to update")
    _check(model, data, partial=True)

    with engine.begin() as conn:
        result = conn.execute(model.table.update().where(*_live(model), *conditions).values(**data))
    logger.info("Updated %d row(s) in '%s'", result.rowcount, model.table_name)
    return result.rowcount


def delete(model: Model, engine: Engine, where: Optional[dict[str, Any]], force: bool = False) -> int:
    """Delete rows matching ``where`` (required); paranoid models get ``deleted_at`` set instead."""
    conditions = _conditions(model, where)
    if not conditions:
        raise QueryError("A where clause is required for delete")

    with engine.begin() as conn:
        if model.options.paranoid and not force and model.options.deleted_at in model.table.c:
            stmt = (
                model.table.update()
                .where(*_live(model), *conditions)
                .values({model.options.deleted_at: sa.func.current_timestamp()})
            )
        else:
            stmt = model.table.delete().where(*conditions)
        result = conn.execute(stmt)
    logger.info("Deleted %d row(s) from '%s'", result.rowcount, model.table_name)
    return result.rowcount
