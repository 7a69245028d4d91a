"""
SQLite access for the checkpoint metadata database.

One ``aiosqlite`` connection per repository, in autocommit mode, with
statements serialised behind an asyncio lock.
"""

import aiosqlite
from pathlib import Path
from typing import Optional, List
import asyncio


class Database:
    """Async SQLite database wrapper."""

    def __init__(self, db_path: Path | str):
        """
        Initialize database wrapper.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open database connection."""
        if self._connection is None:
            self._connection = await aiosqlite.connect(
                self.db_path,
                isolation_level=None  # Autocommit mode
            )

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def execute(self, sql: str, parameters: tuple = ()) -> aiosqlite.Cursor:
        """
        Execute SQL statement.

        Args:
            sql: SQL statement
            parameters: Query parameters

        Returns:
            Cursor object
        """
        async with self._lock:
            if not self._connection:
                await self.connect()
            return await self._connection.execute(sql, parameters)

    async def executescript(self, script: str) -> None:
        """Run several statements at once (schema creation)."""
        async with self._lock:
            if not self._connection:
                await self.connect()
            await self._connection.executescript(script)

    async def fetchone(self, sql: str, parameters: tuple = ()) -> Optional[tuple]:
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchone()

    async def fetchall(self, sql: str, parameters: tuple = ()) -> List[tuple]:
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchall()

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
