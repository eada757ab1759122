from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, JSON, DateTime, func
from typing import Dict, Any

from .authz import Base


class DefaultsDocument(Base):
    """Key/value configuration documents (modules, users_parameters, providers ...)."""
    __tablename__ = 'defaults'
    KEY_MODULES = 'modules'
    KEY_USERS_PARAMETERS = 'users_parameters'
    KEY_PROVIDERS = 'providers'
    KEY_INVENTORY_CODES = 'inventory_default_codes'
    KEY_STORAGE = 'storage_defaults'

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    data: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    updated_at = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
