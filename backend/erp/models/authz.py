from __future__ import annotations
from sqlalchemy.orm import declarative_base, Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, ForeignKey, JSON, DateTime, Text, func
from typing import Optional, Dict, Any

Base = declarative_base()


class Role(Base):
    """Named bundle of per-module access levels (module code -> r / rw / admin)."""
    __tablename__ = 'roles'
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    label: Mapped[str] = mapped_column(String(128), nullable=False)
    modules: Mapped[Dict[str, str]] = mapped_column(JSON, default=dict)
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class User(Base):
    __tablename__ = 'users'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    # Copied into every access token issued for the user
    custom_claims: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    updated_at = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def set_password(self, raw: str):
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        from werkzeug.security import check_password_hash
        return check_password_hash(self.password_hash, raw)


class UserRole(Base):
    """One assignment record per user, mirrored from the user's custom claims."""
    __tablename__ = 'user_roles'
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    # No FK: the bootstrap admin assignment may predate any roles row
    role_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    role_label: Mapped[Optional[str]] = mapped_column(String(128))
    assigned_by: Mapped[str] = mapped_column(String(128), nullable=False)
    assigned_at = mapped_column(DateTime(timezone=True), nullable=False)
    user_email: Mapped[Optional[str]] = mapped_column(String(128))
    user_name: Mapped[Optional[str]] = mapped_column(String(128))
