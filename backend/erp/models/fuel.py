from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Float, Boolean, ForeignKey, JSON, Date, DateTime, Text, func
from typing import Optional, Dict, Any

from .authz import Base


class FuelEntry(Base):
    """ECOM01 fuel delivery, signed remotely by the driver before completion."""
    __tablename__ = 'fuel_entries'
    # Status constants
    STATUS_PENDING = 'pending'
    STATUS_SIGNED = 'signed'
    STATUS_COMPLETED = 'completed'
    ALL_STATUSES = (STATUS_PENDING, STATUS_SIGNED, STATUS_COMPLETED)
    # dd-mm-yyyy_<8 base36 chars>
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    signature_token: Mapped[str] = mapped_column(String(32), nullable=False)
    signature: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    signed_at = mapped_column(DateTime(timezone=True))
    created_by: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_by_email: Mapped[Optional[str]] = mapped_column(String(128))
    created_at = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at = mapped_column(DateTime(timezone=True))
    entry_date = mapped_column(Date)
    provider: Mapped[Optional[str]] = mapped_column(String(128))
    plate: Mapped[Optional[str]] = mapped_column(String(32))
    driver: Mapped[Optional[str]] = mapped_column(String(128))
    invoice: Mapped[Optional[str]] = mapped_column(String(64))
    invoiced_litres: Mapped[Optional[float]] = mapped_column(Float)
    unload_time: Mapped[Optional[str]] = mapped_column(String(5))
    received_litres: Mapped[Optional[float]] = mapped_column(Float)
    updated_at = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def difference(self) -> Optional[float]:
        if self.invoiced_litres is None or self.received_litres is None:
            return None
        return round(self.invoiced_litres - self.received_litres, 3)


class FuelLoadDay(Base):
    """SCOM01 day document keyed dd-mm-yyyy, holding pump totalizer readings."""
    __tablename__ = 'fuel_load_days'
    id: Mapped[str] = mapped_column(String(10), primary_key=True)
    day = mapped_column(Date, nullable=False, unique=True, index=True)
    totalizer_start: Mapped[Optional[float]] = mapped_column(Float)
    totalizer_end: Mapped[Optional[float]] = mapped_column(Float)
    updated_at = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    loads = relationship('FuelLoad', back_populates='day_doc', cascade='all, delete-orphan', order_by='FuelLoad.id')


class FuelLoad(Base):
    __tablename__ = 'fuel_loads'
    KIND_FLEET = 'flota'
    KIND_EXTERNAL = 'externa'
    ALL_KINDS = (KIND_FLEET, KIND_EXTERNAL)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    day_id: Mapped[str] = mapped_column(ForeignKey('fuel_load_days.id', ondelete='CASCADE'), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    litres: Mapped[float] = mapped_column(Float, nullable=False)
    # fleet loads
    unit_number: Mapped[Optional[str]] = mapped_column(String(32))
    # external loads
    company: Mapped[Optional[str]] = mapped_column(String(128))
    plate: Mapped[Optional[str]] = mapped_column(String(32))
    driver: Mapped[Optional[str]] = mapped_column(String(128))
    load_time: Mapped[Optional[str]] = mapped_column(String(5))
    odometer: Mapped[Optional[float]] = mapped_column(Float)
    hour_meter: Mapped[Optional[float]] = mapped_column(Float)
    seal: Mapped[Optional[str]] = mapped_column(String(64))
    has_signature: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    signature_svg: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at = mapped_column(DateTime(timezone=True), nullable=False)
    day_doc = relationship('FuelLoadDay', back_populates='loads')
