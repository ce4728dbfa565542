"""Connections and write transactions"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import aiosqlite

from config import DB_BUSY_TIMEOUT, DB_LOCK_RETRIES, DB_LOCK_RETRY_DELAY
from database.migrations.migration_manager import MigrationManager
from database.migrations.versions import ALL_MIGRATIONS
from utils.retry import async_retry


@asynccontextmanager
async def connect(db_path: str) -> AsyncIterator[aiosqlite.Connection]:
    """Open a connection with Row results and foreign keys enforced"""
    async with aiosqlite.connect(db_path, timeout=DB_BUSY_TIMEOUT) as db:
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys = ON")
        yield db


@async_retry(
    max_attempts=DB_LOCK_RETRIES,
    delay=DB_LOCK_RETRY_DELAY,
    exceptions=(aiosqlite.OperationalError,),
)
async def begin_immediate(db: aiosqlite.Connection):
    """Take the database write lock up front

    Every check-then-write runs after this, so two writers can never both
    observe a free slot before either inserts.
    """
    await db.execute("BEGIN IMMEDIATE")


@asynccontextmanager
async def write_transaction(db_path: str) -> AsyncIterator[aiosqlite.Connection]:
    """Serialized read-check-write unit, committed on success"""
    async with connect(db_path) as db:
        await begin_immediate(db)
        try:
            yield db
        except BaseException:
            await db.rollback()
            raise
        await db.commit()


async def init_db(db_path: str) -> int:
    """Bring the schema to the latest version

    Returns:
        int: schema version after migrating
    """
    manager = MigrationManager(db_path)
    for migration_class in ALL_MIGRATIONS:
        manager.register(migration_class)
    await manager.migrate()
    version = await manager.get_current_version()
    logging.info(f"Database {db_path} ready at schema version {version}")
    return version
