"""
User Module - Models
======================
Accounts known to the storefront. Identity (login, tokens) is issued by the
session service; here we only keep the profile and the role.
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, true
from sqlalchemy.sql import func
from config.database import Base


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    phone = Column(String, nullable=False, default="", server_default="")
    role = Column(String, nullable=False, default=UserRole.USER.value, server_default=UserRole.USER.value)
    profile_pic = Column(String, nullable=True)
    profile_pic_id = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, server_default=true(), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
