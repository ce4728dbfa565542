"""Directory mirror of the identity service"""

from typing import Iterable, List, Optional

import aiosqlite

from database.base_repository import BaseRepository
from database.models import Actor, Role, User


def _user_from_row(row) -> User:
    return User(
        id=row["id"],
        name=row["name"],
        role=Role(row["role"]),
        is_active=bool(row["is_active"]),
        telegram_id=row["telegram_id"],
    )


class UserRepository(BaseRepository):
    """Users, roles and manager scopes"""

    @staticmethod
    async def upsert_user(db: aiosqlite.Connection, user: User):
        await db.execute(
            """INSERT INTO users (id, name, role, is_active, telegram_id)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name=excluded.name, role=excluded.role,
                is_active=excluded.is_active, telegram_id=excluded.telegram_id""",
            (user.id, user.name, user.role.value, user.is_active, user.telegram_id),
        )

    @staticmethod
    async def get_user(db: aiosqlite.Connection, user_id: int) -> Optional[User]:
        row = await UserRepository._fetch_one(
            db, "SELECT * FROM users WHERE id=?", (user_id,)
        )
        return _user_from_row(row) if row else None

    @staticmethod
    async def get_by_telegram_id(
        db: aiosqlite.Connection, telegram_id: int
    ) -> Optional[User]:
        row = await UserRepository._fetch_one(
            db, "SELECT * FROM users WHERE telegram_id=?", (telegram_id,)
        )
        return _user_from_row(row) if row else None

    @staticmethod
    async def get_active_barber(db: aiosqlite.Connection, barber_id: int) -> Optional[User]:
        row = await UserRepository._fetch_one(
            db,
            "SELECT * FROM users WHERE id=? AND role='barber' AND is_active=1",
            (barber_id,),
        )
        return _user_from_row(row) if row else None

    @staticmethod
    async def set_managed_salons(
        db: aiosqlite.Connection, manager_id: int, salon_ids: Iterable[int]
    ):
        await db.execute("DELETE FROM manager_salons WHERE manager_id=?", (manager_id,))
        await db.executemany(
            "INSERT INTO manager_salons (manager_id, salon_id) VALUES (?, ?)",
            [(manager_id, salon_id) for salon_id in salon_ids],
        )

    @staticmethod
    async def get_managed_salon_ids(db: aiosqlite.Connection, manager_id: int) -> List[int]:
        rows = await UserRepository._fetch_all(
            db,
            "SELECT salon_id FROM manager_salons WHERE manager_id=? ORDER BY salon_id",
            (manager_id,),
        )
        return [row["salon_id"] for row in rows]

    @staticmethod
    async def resolve_actor(db: aiosqlite.Connection, user_id: int) -> Optional[Actor]:
        """Build the Actor the core expects from a directory entry"""
        user = await UserRepository.get_user(db, user_id)
        if not user or not user.is_active:
            return None

        managed = ()
        if user.role is Role.MANAGER:
            managed = tuple(await UserRepository.get_managed_salon_ids(db, user_id))
        return Actor(user_id=user.id, role=user.role, managed_salon_ids=managed)
