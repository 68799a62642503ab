"""Versioned schema migrations for the ``photos`` table.

Two schema shapes exist:

- v1: ``photos(id, uri)``, as written by the first releases of the app.
- v2: ``photos(id, uri, latitude, longitude)`` with nullable coordinates.

Every step is additive or reversible and all steps run inside a single
transaction, so a failing step leaves the database exactly as it was. Rows are
never dropped: v1 -> v2 adds two nullable columns and v2 -> v1 removes them
again through alembic's batch (copy-and-move) mode.
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations
from loguru import logger
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from photostore.errors import PersistenceError, PhotoStoreError, SchemaVersionError
from photostore.models import SchemaInfo

CURRENT_VERSION = 2
MIN_VERSION = 1
COORDINATE_COLUMNS = ("latitude", "longitude")


def detect_version(conn) -> int:
    """Return the schema version of the database behind ``conn``.

    ``0`` means there is no photo table yet. Without a stored marker the
    version is inferred from the columns of ``photos``: the legacy build that
    recreated the table with coordinates counts as v2.
    """
    inspector = inspect(conn)
    tables = set(inspector.get_table_names())
    if SchemaInfo.__tablename__ in tables:
        version = conn.execute(
            sa.select(SchemaInfo.version).where(SchemaInfo.id == 1)
        ).scalar()
        if version is not None:
            return int(version)
    if "photos" not in tables:
        return 0
    columns = {c["name"] for c in inspector.get_columns("photos")}
    if all(name in columns for name in COORDINATE_COLUMNS):
        return 2
    return 1


def _create_photos(conn, ops: Operations) -> None:
    ops.create_table(
        "photos",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("uri", sa.Text, nullable=False),
        sqlite_autoincrement=True,
    )


def _add_coordinates(conn, ops: Operations) -> None:
    existing = {c["name"] for c in inspect(conn).get_columns("photos")}
    for name in COORDINATE_COLUMNS:
        if name not in existing:
            ops.add_column("photos", sa.Column(name, sa.Float, nullable=True))


def _drop_coordinates(conn, ops: Operations) -> None:
    existing = {c["name"] for c in inspect(conn).get_columns("photos")}
    with ops.batch_alter_table(
        "photos", recreate="always", table_kwargs={"sqlite_autoincrement": True}
    ) as batch:
        for name in COORDINATE_COLUMNS:
            if name in existing:
                batch.drop_column(name)


# version -> (upgrade into it, downgrade out of it)
STEPS = {
    1: (_create_photos, None),  # never reverted, MIN_VERSION is 1
    2: (_add_coordinates, _drop_coordinates),
}


def _stamp(conn, version: int) -> None:
    SchemaInfo.__table__.create(conn, checkfirst=True)
    table = SchemaInfo.__table__
    updated = conn.execute(
        table.update().where(table.c.id == 1).values(version=version, updated_at=sa.func.current_timestamp())
    )
    if updated.rowcount == 0:
        conn.execute(table.insert().values(id=1, version=version))


def _migrate_sync(conn, target_version: int) -> int:
    current = detect_version(conn)
    if current > CURRENT_VERSION:
        raise SchemaVersionError(
            f"database schema v{current} is newer than supported v{CURRENT_VERSION}"
        )
    ops = Operations(MigrationContext.configure(conn))
    if current < target_version:
        for version in range(current + 1, target_version + 1):
            logger.info("Applying photo schema upgrade to v{}", version)
            STEPS[version][0](conn, ops)
    elif current > target_version:
        for version in range(current, target_version, -1):
            logger.info("Reverting photo schema v{}", version)
            STEPS[version][1](conn, ops)
    _stamp(conn, target_version)
    return target_version


async def migrate(engine, target_version: int = CURRENT_VERSION) -> int:
    """Bring the schema to ``target_version`` and return it.

    Idempotent: calling it on an up-to-date database only re-stamps the marker.
    Raises SchemaVersionError for unknown versions and PersistenceError when
    the database rejects a step; in both cases nothing is committed.
    """
    if not MIN_VERSION <= target_version <= CURRENT_VERSION:
        raise SchemaVersionError(f"unknown schema version: {target_version}")
    try:
        async with engine.begin() as conn:
            return await conn.run_sync(_migrate_sync, target_version)
    except PhotoStoreError:
        raise
    except SQLAlchemyError as exc:
        raise PersistenceError(f"schema migration failed: {exc}") from exc


async def current_version(engine) -> int:
    """Report the schema version without changing anything."""
    try:
        async with engine.connect() as conn:
            return await conn.run_sync(detect_version)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"cannot read schema version: {exc}") from exc
