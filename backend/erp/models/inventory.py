from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Float, Boolean, ForeignKey, JSON, DateTime, Text, UniqueConstraint, func
from typing import Optional, Dict, Any

from .authz import Base


class InventoryMove(Base):
    """Append-only ledger entry. Entries (EMAT01) are positive, exits (SMAT01) negative."""
    __tablename__ = 'inventory_moves'
    SOURCE_ENTRY = 'EMAT01'
    SOURCE_EXIT = 'SMAT01'
    ALL_SOURCES = (SOURCE_ENTRY, SOURCE_EXIT)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    material_id: Mapped[str] = mapped_column(ForeignKey('materials.id'), nullable=False, index=True)
    qty: Mapped[float] = mapped_column(Float, nullable=False)
    effective_at = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    recorded_at = mapped_column(DateTime(timezone=True), nullable=False)
    storage_location: Mapped[str] = mapped_column(String(64), nullable=False)
    source: Mapped[str] = mapped_column(String(16), nullable=False)
    source_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # Work order id for exits bound to an order
    reason: Mapped[Optional[str]] = mapped_column(String(64))
    approved_by_email: Mapped[Optional[str]] = mapped_column(String(128))
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (UniqueConstraint('material_id', 'source', 'source_id', name='uq_move_source'),)


class InventoryStock(Base):
    """Live per-location quantity cache kept in step with the moves ledger."""
    __tablename__ = 'inventory_stock'
    material_id: Mapped[str] = mapped_column(ForeignKey('materials.id'), primary_key=True)
    storage_location: Mapped[str] = mapped_column(String(64), primary_key=True)
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    last_entry = mapped_column(DateTime(timezone=True))
    last_exit = mapped_column(DateTime(timezone=True))
    last_modified = mapped_column(DateTime(timezone=True))


class DailySnapshot(Base):
    __tablename__ = 'inventory_daily_snapshots'
    material_id: Mapped[str] = mapped_column(ForeignKey('materials.id'), primary_key=True)
    # YYYYMMDD in the report time zone
    day_key: Mapped[str] = mapped_column(String(8), primary_key=True)
    opening: Mapped[Dict[str, float]] = mapped_column(JSON, default=dict)
    closing: Mapped[Dict[str, float]] = mapped_column(JSON, default=dict)
    updated_at = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class MaterialEntry(Base):
    """EMAT01 entry request, applied to stock once approved (AEMAT01)."""
    __tablename__ = 'material_entries'
    STATE_PENDING = 'pending'
    STATE_ACCEPTED = 'accepted'
    ALL_STATES = (STATE_PENDING, STATE_ACCEPTED)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    material_id: Mapped[str] = mapped_column(ForeignKey('materials.id'), nullable=False, index=True)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    storage_location: Mapped[str] = mapped_column(String(64), nullable=False)
    entry_date = mapped_column(DateTime(timezone=True), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    state: Mapped[str] = mapped_column(String(16), nullable=False, default=STATE_PENDING, index=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_by_email: Mapped[Optional[str]] = mapped_column(String(128))
    accepted_at = mapped_column(DateTime(timezone=True))
    accepted_by_email: Mapped[Optional[str]] = mapped_column(String(128))
    updated_at = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class MaterialExit(Base):
    """SMAT01 exit request; one request may withdraw several materials."""
    __tablename__ = 'material_exits'
    TYPE_ORDER = 'orden'
    TYPE_PRIVATE = 'particular'
    TYPE_ADJUSTMENT = 'ajuste'
    ALL_TYPES = (TYPE_ORDER, TYPE_PRIVATE, TYPE_ADJUSTMENT)
    STATE_PENDING = 'pending'
    STATE_ACCEPTED = 'accepted'
    ALL_STATES = (STATE_PENDING, STATE_ACCEPTED)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entry_type: Mapped[str] = mapped_column(String(16), nullable=False)
    work_order_id: Mapped[Optional[int]] = mapped_column(ForeignKey('work_orders.id'), index=True)
    mobile_unit: Mapped[Optional[str]] = mapped_column(String(64))
    storage_location: Mapped[str] = mapped_column(String(64), nullable=False)
    # material id -> quantity withdrawn
    quantities: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    exit_date = mapped_column(DateTime(timezone=True), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    state: Mapped[str] = mapped_column(String(16), nullable=False, default=STATE_PENDING, index=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_by_email: Mapped[Optional[str]] = mapped_column(String(128))
    accepted_at = mapped_column(DateTime(timezone=True))
    accepted_by_email: Mapped[Optional[str]] = mapped_column(String(128))
    updated_at = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
