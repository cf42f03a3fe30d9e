from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol

import aiosqlite


class PersonalityStore(Protocol):
    async def init(self) -> None: ...

    async def set_personality(self, user_id: str, personality: str) -> None: ...

    async def get_personality(self, user_id: str) -> Optional[str]: ...

    async def close(self) -> None: ...


class SQLitePersonalityStore:
    """Per-user personality text, one row per user, latest write wins."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db: aiosqlite.Connection | None = None

    async def init(self) -> None:
        if self._db is not None:
            return
        self._db = await aiosqlite.connect(self.db_path)
        await self._db.execute(
            """
            CREATE TABLE IF NOT EXISTS personalities (
                user_id TEXT PRIMARY KEY,
                personality TEXT NOT NULL,
                updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        await self._db.commit()

    async def _connection(self) -> aiosqlite.Connection:
        if self._db is None:
            await self.init()
        assert self._db is not None
        return self._db

    async def set_personality(self, user_id: str, personality: str) -> None:
        db = await self._connection()
        await db.execute(
            """
            INSERT INTO personalities (user_id, personality, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(user_id) DO UPDATE SET
                personality = excluded.personality,
                updated_at = CURRENT_TIMESTAMP
            """,
            (user_id, personality),
        )
        await db.commit()

    async def get_personality(self, user_id: str) -> Optional[str]:
        db = await self._connection()
        async with db.execute(
            "SELECT personality FROM personalities WHERE user_id = ?",
            (user_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
