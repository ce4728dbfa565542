"""Shared query helpers for repositories"""

from typing import Any, List, Optional, Sequence

import aiosqlite


class BaseRepository:
    """Static helpers bound to an open connection

    Repositories never open connections themselves: the caller owns the
    connection so that reads and writes can share one transaction.
    """

    @staticmethod
    async def _fetch_one(
        db: aiosqlite.Connection, query: str, params: Sequence[Any] = ()
    ) -> Optional[aiosqlite.Row]:
        async with db.execute(query, params) as cursor:
            return await cursor.fetchone()

    @staticmethod
    async def _fetch_all(
        db: aiosqlite.Connection, query: str, params: Sequence[Any] = ()
    ) -> List[aiosqlite.Row]:
        async with db.execute(query, params) as cursor:
            return list(await cursor.fetchall())
