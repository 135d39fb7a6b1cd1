"""Contact lookup and idempotent upsert by (workspace, phone)."""

from __future__ import annotations

from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.contact import Contact
from app.utils.db.upsert import insert_if_absent


def is_richer_name(current: Optional[str], candidate: Optional[str], phone: str) -> bool:
    """
    True when candidate should replace current.

    A stored name is only replaced when it is empty or just the phone number;
    a candidate that is empty or equal to the phone never wins.
    """
    candidate = (candidate or "").strip()
    if not candidate or candidate == phone:
        return False
    current = (current or "").strip()
    return not current or current == phone


class ContactService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def upsert(
        self, workspace_id: UUID, phone: str, push_name: Optional[str] = None
    ) -> Tuple[Contact, bool]:
        """
        Get or create the contact for a phone number. Returns (contact, created).

        A new contact is named after the push name, or the phone when there is
        none. An existing contact's name is upgraded only per is_richer_name.
        """
        name = (push_name or "").strip() or phone
        contact, created = insert_if_absent(
            self.db,
            Contact,
            ("workspace_id", "phone"),
            {"workspace_id": workspace_id, "phone": phone, "name": name, "extra": {}},
        )
        if not created and is_richer_name(contact.name, push_name, phone):
            contact.name = push_name.strip()
            self.db.flush()
        return contact, created
