from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, DateTime, func
from typing import Optional

from .authz import Base


class Material(Base):
    __tablename__ = 'materials'
    # Six digit sequence, e.g. 000042
    id: Mapped[str] = mapped_column(String(6), primary_key=True)
    zone: Mapped[str] = mapped_column(String(16), nullable=False)
    category: Mapped[str] = mapped_column(String(16), nullable=False)
    subcategory: Mapped[str] = mapped_column(String(16), nullable=False)
    category_number: Mapped[str] = mapped_column(String(4), nullable=False)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    min_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit: Mapped[str] = mapped_column(String(32), nullable=False)
    brand: Mapped[str] = mapped_column(String(128), nullable=False, default='default')
    supplier: Mapped[str] = mapped_column(String(128), nullable=False, default='default')
    created_by: Mapped[Optional[str]] = mapped_column(String(64))
    created_by_email: Mapped[Optional[str]] = mapped_column(String(128))
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
