from typing import Iterable

from sqlalchemy import UniqueConstraint, and_, select
from sqlalchemy import inspect as sa_inspect


def find_unknown_model_kwargs(model, kwargs: dict) -> list[str]:
    """
    Return the kwarg keys that are not mapped attributes (columns or relationships) of `model`.
    """
    allowed = {attr.key for attr in sa_inspect(model).attrs}
    return [k for k in kwargs if k not in allowed]


def _is_generated_pk(col) -> bool:
    # Integer primary keys default to autoincrement="auto"
    return bool(col.primary_key) and col.autoincrement in (True, "auto")


def get_required_columns(model) -> list[str]:
    """
    Columns that are NOT NULL, have no client/server default and are not generated primary keys.
    """
    cols = []
    for col in model.__table__.columns:
        has_default = col.default is not None or col.server_default is not None
        if not col.nullable and not has_default and not _is_generated_pk(col):
            cols.append(col.name)
    return cols


def get_unique_column_sets(model) -> list[Iterable[str]]:
    """
    Return a list of unique column sets, each a list of column names.

    Covers `unique=True` columns, `UniqueConstraint`s and unique indexes.
    """
    unique_sets = []
    table = model.__table__

    for col in table.columns:
        if col.unique:
            unique_sets.append([col.name])

    for constraint in table.constraints:
        if isinstance(constraint, UniqueConstraint):
            names = [c.name for c in constraint.columns]
            if names not in unique_sets:
                unique_sets.append(names)

    for idx in table.indexes:
        if idx.unique:
            unique_sets.append([c.name for c in idx.columns])

    return unique_sets


async def find_unique_conflicts(db, model, kwargs: dict) -> set[str]:
    """
    Query for existing rows that would violate a unique column set.
    Returns the set of conflicting column names (best-effort pre-check;
    the database constraint remains the source of truth).
    """
    conflicts: set[str] = set()

    for cols in get_unique_column_sets(model):
        if not all(c in kwargs for c in cols):
            continue

        conditions = [getattr(model, c) == kwargs[c] for c in cols]
        res = await db.execute(select(model).where(and_(*conditions)).limit(1))
        if res.scalars().first() is not None:
            conflicts.update(cols)

    return conflicts
