"""
Invitation Store - persistence for family invitations.

This is a DATA LAYER component:
- Handles database operations for the family_invitations table
- NO business logic (the workflow decides when an invitation may change)
- Invitations are never deleted; history is retained

Database: Shares its file with FamilyNetworkRegistry.
"""

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional, List

from familytree.config import settings
from familytree.errors import StoreError
from familytree.models import FamilyInvitation, InvitationStatus


class InvitationStore:
    """Stores invitations offering placeholder members to real accounts."""

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
        """Initialize family_invitations table."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS family_invitations (
                    id TEXT PRIMARY KEY,
                    sender_id TEXT NOT NULL,
                    receiver_id TEXT NOT NULL,
                    member_id TEXT NOT NULL,
                    relation_type TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_invitation_receiver ON family_invitations(receiver_id, status)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_invitation_sender ON family_invitations(sender_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_invitation_member ON family_invitations(member_id, receiver_id)")

    def _row_to_invitation(self, row: sqlite3.Row) -> FamilyInvitation:
        return FamilyInvitation(
            id=row["id"],
            sender_id=row["sender_id"],
            receiver_id=row["receiver_id"],
            member_id=row["member_id"],
            relation_type=row["relation_type"],
            status=InvitationStatus(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def create(
        self,
        sender_id: str,
        receiver_id: str,
        member_id: str,
        relation_type: str
    ) -> FamilyInvitation:
        """Insert a new pending invitation."""
        now = datetime.now()
        invitation = FamilyInvitation(
            id=str(uuid.uuid4()),
            sender_id=sender_id,
            receiver_id=receiver_id,
            member_id=member_id,
            relation_type=relation_type,
            created_at=now,
            updated_at=now,
        )
        with self._connect() as conn:
            conn.execute("""
                INSERT INTO family_invitations
                    (id, sender_id, receiver_id, member_id, relation_type, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                invitation.id, sender_id, receiver_id, member_id, relation_type,
                invitation.status.value, now.isoformat(), now.isoformat()
            ))
        return invitation

    def get(self, invitation_id: str) -> Optional[FamilyInvitation]:
        """Get invitation by ID."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM family_invitations WHERE id = ?", (invitation_id,)
            ).fetchone()
            return self._row_to_invitation(row) if row else None

    def find_pending(self, member_id: str, receiver_id: str) -> Optional[FamilyInvitation]:
        """Pending invitation offering member_id to receiver_id, if any."""
        with self._connect() as conn:
            row = conn.execute("""
                SELECT * FROM family_invitations
                WHERE member_id = ? AND receiver_id = ? AND status = ?
                ORDER BY created_at LIMIT 1
            """, (member_id, receiver_id, InvitationStatus.PENDING.value)).fetchone()
            return self._row_to_invitation(row) if row else None

    def list_by_participant(
        self,
        user_id: str,
        status: InvitationStatus = None,
        role: str = "any"
    ) -> List[FamilyInvitation]:
        """
        Invitations a user sent or received, newest first.

        Args:
            user_id: Account id
            status: Only this status when given
            role: "sender", "receiver" or "any"
        """
        if role == "sender":
            conditions = ["sender_id = ?"]
            params = [user_id]
        elif role == "receiver":
            conditions = ["receiver_id = ?"]
            params = [user_id]
        else:
            conditions = ["(sender_id = ? OR receiver_id = ?)"]
            params = [user_id, user_id]

        if status is not None:
            conditions.append("status = ?")
            params.append(InvitationStatus(status).value)

        where_clause = " AND ".join(conditions)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM family_invitations WHERE {where_clause} ORDER BY created_at DESC, rowid DESC",
                params
            ).fetchall()
            return [self._row_to_invitation(row) for row in rows]

    def update_status(self, invitation_id: str, status: InvitationStatus) -> bool:
        """Set invitation status. Returns False if no such invitation."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE family_invitations SET status = ?, updated_at = ? WHERE id = ?",
                (InvitationStatus(status).value, datetime.now().isoformat(), invitation_id)
            )
            return cursor.rowcount > 0
