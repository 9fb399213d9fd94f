"""Delivery addresses for the email and push channels."""

from sqlalchemy import Column, DateTime, String
from sqlalchemy.types import JSON

from notifyhub.core.database import Base
from notifyhub.models.shared import UUIDType, generate_uuid, utc_now


class UserContact(Base):
    __tablename__ = "user_contacts"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(String(64), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=True)
    push_tokens = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
