# app/models/user.py
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Integer, String, Boolean, DateTime
import uuid
import enum
from models.base import Base


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"
    CONTENT_CREATOR = "CONTENT_CREATOR"
    CLIENT = "CLIENT"


def parse_role(value) -> Optional[UserRole]:
    """Map a raw role value onto the closed role set; None when unrecognized."""
    if isinstance(value, UserRole):
        return value
    try:
        return UserRole(value)
    except (ValueError, TypeError):
        return None


class User(Base):
    __tablename__ = "users"

    # ---------- identifiers ----------
    id = Column(Integer, primary_key=True)
    uuid = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))

    # ---------- profile ----------
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(200), nullable=True)
    image = Column(String(500), nullable=True)
    language = Column(String(10), default="en")

    # ---------- auth ----------
    hashed_password = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    # stored as plain text: rows written before an enum change must still load
    role = Column(String(32), default=UserRole.CLIENT.value, nullable=False, index=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def display_name(self) -> str:
        return self.name or self.email
