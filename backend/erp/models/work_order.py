from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Boolean, JSON, DateTime, Text, func
from typing import Optional, Dict, Any, List

from .authz import Base


class WorkOrder(Base):
    __tablename__ = 'work_orders'
    # Order types
    TYPE_GENERAL = 'General'
    TYPE_WORKSHOP = 'Taller'
    ALL_TYPES = (TYPE_GENERAL, TYPE_WORKSHOP)
    # State constants
    STATE_OPEN = 'open'
    STATE_CLOSED = 'closed'
    ALL_STATES = (STATE_OPEN, STATE_CLOSED)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_type: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    equipment: Mapped[Optional[str]] = mapped_column(String(128))
    mobile_unit: Mapped[Optional[str]] = mapped_column(String(64))
    description: Mapped[str] = mapped_column(Text, nullable=False)
    technicians: Mapped[List[str]] = mapped_column(JSON, default=list)
    # material id -> quantity the job needs
    required_materials: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    state: Mapped[str] = mapped_column(String(16), nullable=False, default=STATE_OPEN, index=True)
    state_used_audit: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def equipment_label(self) -> Optional[str]:
        return self.mobile_unit if self.order_type == self.TYPE_WORKSHOP else self.equipment
