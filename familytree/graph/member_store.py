"""SQLite store for family tree member rows."""

import asyncio
import sqlite3
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from familytree.config import settings
from familytree.errors import StoreError
from familytree.graph.change_feed import ChangeFeed


@dataclass
class MemberRow:
    """Persisted shape of one tree member."""
    id: str
    owner_id: str
    member_name: str = ""
    relation_type: str = "self"  # tag plus optional |x:..|y:.. suffix
    avatar_url: Optional[str] = None
    gender: Optional[str] = None
    linked_user_id: Optional[str] = None
    is_placeholder: bool = True
    position_x: Optional[float] = None
    position_y: Optional[float] = None
    merged_into: Optional[str] = None
    birth_year: Optional[int] = None
    death_year: Optional[int] = None
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    updated_at: str = field(default_factory=lambda: datetime.now().isoformat())


class TreeMemberStore:
    """
    Row store for tree members.

    Async methods run the sqlite work in a worker thread and publish to the
    change feed after every successful write.
    """

    UPDATABLE = {
        "member_name", "relation_type", "avatar_url", "gender", "linked_user_id",
        "is_placeholder", "position_x", "position_y", "merged_into",
        "birth_year", "death_year",
    }

    def __init__(self, db_path: Optional[str] = None, feed: Optional[ChangeFeed] = None):
        self.db_path = db_path or settings.database.tree_db_path
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.feed = feed
        self._init_db()

    def _init_db(self):
        """Initialize database schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS family_tree_members (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    member_name TEXT DEFAULT '',
                    relation_type TEXT NOT NULL,
                    avatar_url TEXT,
                    gender TEXT,
                    linked_user_id TEXT,
                    is_placeholder INTEGER DEFAULT 1,
                    position_x REAL,
                    position_y REAL,
                    merged_into TEXT,
                    birth_year INTEGER,
                    death_year INTEGER,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_member_owner ON family_tree_members(owner_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_member_linked ON family_tree_members(linked_user_id)")

    # ─────────────────────────────────────────
    # Blocking operations
    # ─────────────────────────────────────────

    def _row_to_member_row(self, row: sqlite3.Row) -> MemberRow:
        data = dict(row)
        data["is_placeholder"] = bool(data["is_placeholder"])
        return MemberRow(**data)

    def select_by_owner_sync(self, owner_id: str) -> list[MemberRow]:
        """All rows of one owner, oldest first."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                "SELECT * FROM family_tree_members WHERE owner_id = ? ORDER BY created_at, rowid",
                (owner_id,)
            ).fetchall()
            return [self._row_to_member_row(row) for row in rows]

    def get_sync(self, member_id: str) -> Optional[MemberRow]:
        """Get a row by id."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(
                "SELECT * FROM family_tree_members WHERE id = ?", (member_id,)
            ).fetchone()
            return self._row_to_member_row(row) if row else None

    def _insert(self, row: MemberRow) -> None:
        data = asdict(row)
        data["is_placeholder"] = int(row.is_placeholder)
        columns = ", ".join(data.keys())
        marks = ", ".join("?" for _ in data)
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                f"INSERT INTO family_tree_members ({columns}) VALUES ({marks})",
                list(data.values())
            )

    def _update(self, member_id: str, partial: dict) -> Optional[str]:
        """Apply partial update. Returns the owner id, or None if no row matched."""
        updates = {k: v for k, v in partial.items() if k in self.UPDATABLE}
        if "is_placeholder" in updates:
            updates["is_placeholder"] = int(bool(updates["is_placeholder"]))
        updates["updated_at"] = datetime.now().isoformat()

        set_clause = ", ".join(f"{k} = ?" for k in updates.keys())
        values = list(updates.values()) + [member_id]

        with sqlite3.connect(self.db_path) as conn:
            owner = conn.execute(
                "SELECT owner_id FROM family_tree_members WHERE id = ?", (member_id,)
            ).fetchone()
            if owner is None:
                return None
            conn.execute(
                f"UPDATE family_tree_members SET {set_clause} WHERE id = ?", values
            )
            return owner[0]

    def _delete(self, member_id: str) -> Optional[str]:
        with sqlite3.connect(self.db_path) as conn:
            owner = conn.execute(
                "SELECT owner_id FROM family_tree_members WHERE id = ?", (member_id,)
            ).fetchone()
            if owner is None:
                return None
            conn.execute("DELETE FROM family_tree_members WHERE id = ?", (member_id,))
            return owner[0]

    # ─────────────────────────────────────────
    # Async interface
    # ─────────────────────────────────────────

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as e:
            raise StoreError(f"{func.__name__} failed: {e}") from e

    def _notify(self, owner_id: Optional[str]) -> None:
        if self.feed is not None and owner_id is not None:
            self.feed.publish(owner_id)

    async def select_by_owner(self, owner_id: str) -> list[MemberRow]:
        return await self._run(self.select_by_owner_sync, owner_id)

    async def get(self, member_id: str) -> Optional[MemberRow]:
        return await self._run(self.get_sync, member_id)

    async def insert(self, row: MemberRow) -> None:
        await self._run(self._insert, row)
        self._notify(row.owner_id)

    async def update(self, member_id: str, partial: dict) -> bool:
        owner_id = await self._run(self._update, member_id, partial)
        self._notify(owner_id)
        return owner_id is not None

    async def delete(self, member_id: str) -> bool:
        owner_id = await self._run(self._delete, member_id)
        self._notify(owner_id)
        return owner_id is not None
