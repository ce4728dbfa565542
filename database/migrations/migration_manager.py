"""Database migration manager"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Type

import aiosqlite


class Migration(ABC):
    """Base class for schema migrations"""

    version: int
    description: str

    @abstractmethod
    async def upgrade(self, db: aiosqlite.Connection):
        """Apply the migration"""

    @abstractmethod
    async def downgrade(self, db: aiosqlite.Connection):
        """Revert the migration"""


class MigrationManager:
    """Applies and reverts registered migrations in version order"""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.migrations: List[Type[Migration]] = []

    def register(self, migration_class: Type[Migration]):
        self.migrations.append(migration_class)
        self.migrations.sort(key=lambda m: m.version)

    @property
    def latest_version(self) -> int:
        return max((m.version for m in self.migrations), default=0)

    async def init_migrations_table(self):
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """CREATE TABLE IF NOT EXISTS schema_migrations
                (version INTEGER PRIMARY KEY,
                 description TEXT,
                 applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"""
            )
            await db.commit()

    async def get_current_version(self) -> int:
        await self.init_migrations_table()
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT MAX(version) FROM schema_migrations"
            ) as cursor:
                result = await cursor.fetchone()
                return result[0] if result and result[0] else 0

    async def migrate(self, target_version: Optional[int] = None):
        """Apply migrations up to target_version (latest by default)"""
        current = await self.get_current_version()
        target = self.latest_version if target_version is None else target_version

        if current >= target:
            logging.info(f"Database already at version {current}")
            return

        async with aiosqlite.connect(self.db_path) as db:
            for migration_class in self.migrations:
                if current < migration_class.version <= target:
                    migration = migration_class()
                    logging.info(f"Applying migration {migration.version}: {migration.description}")

                    try:
                        await db.execute("BEGIN")
                        await migration.upgrade(db)
                        await db.execute(
                            "INSERT INTO schema_migrations (version, description) VALUES (?, ?)",
                            (migration.version, migration.description),
                        )
                        await db.commit()
                        logging.info(f"Migration {migration.version} applied")
                    except Exception as e:
                        await db.rollback()
                        logging.error(f"Migration {migration.version} failed: {e}")
                        raise

    async def rollback(self, target_version: int):
        """Revert migrations above target_version"""
        current = await self.get_current_version()

        if current <= target_version:
            logging.info("Nothing to rollback")
            return

        async with aiosqlite.connect(self.db_path) as db:
            for migration_class in reversed(self.migrations):
                if target_version < migration_class.version <= current:
                    migration = migration_class()
                    logging.info(f"Rolling back migration {migration.version}")

                    try:
                        await db.execute("BEGIN")
                        await migration.downgrade(db)
                        await db.execute(
                            "DELETE FROM schema_migrations WHERE version=?",
                            (migration.version,),
                        )
                        await db.commit()
                        logging.info(f"Migration {migration.version} rolled back")
                    except Exception as e:
                        await db.rollback()
                        logging.error(f"Rollback {migration.version} failed: {e}")
                        raise
