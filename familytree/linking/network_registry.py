"""
Family Network Registry - groups accounts whose trees have been linked.

Every account belongs to exactly one network. Accepting an invitation unions
the sender's and receiver's networks.

Database: Shares its file with InvitationStore.
"""

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional, List

from familytree.config import settings
from familytree.errors import StoreError
from familytree.logging import get_logger


logger = get_logger(__name__)


class FamilyNetworkRegistry:
    """Manages family network membership."""

    def __init__(self, db_path: str = None):
        self.db_path = db_path or settings.database.invitations_db_path
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self):
        """Connection with rows by column name; sqlite failures become StoreError."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.row_factory = sqlite3.Row
                yield conn
        except sqlite3.Error as e:
            raise StoreError(f"{self.db_path}: {e}") from e

    def _init_db(self):
        """Initialize network tables."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS family_networks (
                    id TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS network_members (
                    user_id TEXT PRIMARY KEY,
                    network_id TEXT NOT NULL REFERENCES family_networks(id),
                    joined_at TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_network_members ON network_members(network_id)")

    def network_of(self, user_id: str) -> Optional[str]:
        """Network id of a user, or None if the user has none yet."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT network_id FROM network_members WHERE user_id = ?", (user_id,)
            ).fetchone()
            return row[0] if row else None

    def ensure_network(self, user_id: str) -> str:
        """Return the user's network, creating a single-member one if needed."""
        existing = self.network_of(user_id)
        if existing:
            return existing

        network_id = str(uuid.uuid4())
        now = datetime.now().isoformat()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO family_networks (id, created_at) VALUES (?, ?)",
                (network_id, now)
            )
            conn.execute(
                "INSERT INTO network_members (user_id, network_id, joined_at) VALUES (?, ?, ?)",
                (user_id, network_id, now)
            )
        return network_id

    def network_users(self, user_id: str) -> List[str]:
        """All users sharing a network with user_id (including the user)."""
        network_id = self.network_of(user_id)
        if network_id is None:
            return []
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT user_id FROM network_members WHERE network_id = ? ORDER BY joined_at, user_id",
                (network_id,)
            ).fetchall()
            return [row[0] for row in rows]

    def merge_networks(self, user_a: str, user_b: str) -> str:
        """
        Union the networks of two users.

        The network of user_a survives; members of user_b's network move
        into it. Returns the surviving network id.
        """
        keep = self.ensure_network(user_a)
        absorb = self.ensure_network(user_b)
        if keep == absorb:
            return keep

        with self._connect() as conn:
            conn.execute(
                "UPDATE network_members SET network_id = ? WHERE network_id = ?",
                (keep, absorb)
            )
            conn.execute("DELETE FROM family_networks WHERE id = ?", (absorb,))

        logger.info("networks_merged", network_id=keep, absorbed=absorb, user_a=user_a, user_b=user_b)
        return keep
