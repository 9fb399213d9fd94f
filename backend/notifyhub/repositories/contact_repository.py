"""Repository for user delivery addresses."""

from __future__ import annotations

from sqlalchemy.orm import Session

from notifyhub.models.contact import UserContact


class ContactRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_user(self, user_id: str) -> UserContact | None:
        return self.db.query(UserContact).filter(UserContact.user_id == user_id).first()

    def upsert(
        self,
        user_id: str,
        email: str | None = None,
        push_tokens: list[str] | None = None,
    ) -> UserContact:
        # Keep order, drop duplicates
        tokens = list(dict.fromkeys(push_tokens)) if push_tokens is not None else None
        contact = self.get_by_user(user_id)
        if contact is None:
            contact = UserContact(user_id=user_id, email=email, push_tokens=tokens or [])
            self.db.add(contact)
        else:
            if email is not None:
                contact.email = email  # type: ignore[assignment]
            if tokens is not None:
                contact.push_tokens = tokens  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(contact)
        return contact
