from __future__ import annotations
from datetime import datetime
from typing import Optional, List
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, JSON, DateTime, ForeignKey, UniqueConstraint
from .authz import Base, utcnow


class DpPayment(Base):
    """Down-payment claim. Only approved claims count towards ServiceRequest.dp."""
    __tablename__ = 'dp_payments'
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    ALL_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    service_request_id: Mapped[int] = mapped_column(ForeignKey('service_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # [{url, public_id}]
    proof: Mapped[List[dict]] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    # email of the staff member, or 'customer' for submissions through a public view
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    approved_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    idempotency_key: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    service_request = relationship('ServiceRequest', back_populates='dp_payments')

    __table_args__ = (UniqueConstraint('service_request_id', 'idempotency_key', name='uq_dp_payment_idempotency'),)

__all__ = ['DpPayment']
