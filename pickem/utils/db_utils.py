"""
Database helpers for natural-key writes
"""

from datetime import datetime, timezone

from sqlalchemy.dialects import postgresql, sqlite

from pickem import db

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert(model, key_fields, values, update_fields):
    """
    Insert a row or overwrite it when its natural key already exists.

    Runs as a single INSERT ... ON CONFLICT DO UPDATE statement, so the
    unique constraint on ``key_fields`` is enforced at the write itself.

    Args:
        model: Mapped model class
        key_fields: Columns of the unique constraint used as conflict target
        values: Column values for the row
        update_fields: Columns overwritten when the key already exists
    """
    dialect_name = db.engine.dialect.name
    insert = _INSERT_BY_DIALECT.get(dialect_name)
    if insert is None:
        raise NotImplementedError(f"Upsert is not supported on {dialect_name}")

    now = datetime.now(timezone.utc)
    row = dict(values)
    if "updated_at" in model.__table__.c:
        row["updated_at"] = now

    stmt = insert(model.__table__).values(**row)
    changes = {field: stmt.excluded[field] for field in update_fields}
    if "updated_at" in model.__table__.c:
        changes["updated_at"] = now

    stmt = stmt.on_conflict_do_update(index_elements=list(key_fields), set_=changes)
    db.session.execute(stmt)
