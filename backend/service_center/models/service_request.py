from __future__ import annotations
from datetime import datetime
from typing import Optional, List
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, Boolean, JSON, DateTime, ForeignKey

from service_center.constants.statuses import STATUS_PENDING
from .authz import Base, utcnow


class ServiceRequest(Base):
    """A customer device handed in for repair, tracked by a human-readable track number."""
    __tablename__ = 'service_requests'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    track_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    branch_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    # customer
    nama: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    alamat: Mapped[str] = mapped_column(Text, nullable=False)
    no_hp: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(128), nullable=False)
    # device
    merk: Mapped[str] = mapped_column(String(80), nullable=False)
    tipe: Mapped[str] = mapped_column(String(80), nullable=False)
    serial_number: Mapped[str] = mapped_column(String(80), nullable=False)
    keluhan: Mapped[str] = mapped_column(Text, nullable=False)
    spesifikasi_teknis: Mapped[str] = mapped_column(Text, nullable=False)
    jenis_perangkat: Mapped[List[str]] = mapped_column(JSON, default=list)
    keterangan_perangkat: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    accessories: Mapped[List[str]] = mapped_column(JSON, default=list)
    keterangan_accessories: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    garansi: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    keterangan_garansi: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    kondisi: Mapped[List[str]] = mapped_column(JSON, default=list)
    keterangan_kondisi: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    prioritas_service: Mapped[str] = mapped_column(String(64), nullable=False)
    penerima_service: Mapped[str] = mapped_column(String(128), nullable=False)
    # workflow
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_PENDING, index=True)
    assigned_technicians: Mapped[List[str]] = mapped_column(JSON, default=list)
    # money, whole rupiah; dp and total_biaya are derived (services.billing)
    dp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_biaya: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    status_log = relationship('StatusLogEntry', back_populates='service_request', cascade='all, delete-orphan', order_by='StatusLogEntry.id')
    estimate_items = relationship('EstimateItem', back_populates='service_request', cascade='all, delete-orphan', order_by='EstimateItem.position')
    dp_payments = relationship('DpPayment', back_populates='service_request', cascade='all, delete-orphan', order_by='DpPayment.id')
    work_log = relationship('WorkLogEntry', back_populates='service_request', cascade='all, delete-orphan', order_by='WorkLogEntry.id')
    customer_log = relationship('CustomerLogEntry', back_populates='service_request', cascade='all, delete-orphan', order_by='CustomerLogEntry.id')
    media_assets = relationship('MediaAsset', back_populates='service_request', cascade='all, delete-orphan', order_by='MediaAsset.id')
    public_views = relationship('PublicView', back_populates='service_request', cascade='all, delete-orphan', order_by='PublicView.id')

    __mapper_args__ = {'version_id_col': version}

    @property
    def subtotal(self) -> int:
        return sum(i.total for i in self.estimate_items)

    def touch(self):
        """Mark the row dirty so child-only edits still bump version/updated_at."""
        self.updated_at = utcnow()


class StatusLogEntry(Base):
    """Append-only status history row. Never updated after insert."""
    __tablename__ = 'status_log_entries'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    service_request_id: Mapped[int] = mapped_column(ForeignKey('service_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_by: Mapped[str] = mapped_column(String(128), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    service_request = relationship('ServiceRequest', back_populates='status_log')


class EstimateItem(Base):
    __tablename__ = 'estimate_items'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    service_request_id: Mapped[int] = mapped_column(ForeignKey('service_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    item: Mapped[str] = mapped_column(String(255), nullable=False, default='')
    harga: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    qty: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    service_request = relationship('ServiceRequest', back_populates='estimate_items')

__all__ = ['ServiceRequest', 'StatusLogEntry', 'EstimateItem']
