from __future__ import annotations
from datetime import datetime
from typing import Optional, List
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, JSON, DateTime, ForeignKey
from .authz import Base, utcnow


class CustomerLogEntry(Base):
    __tablename__ = 'customer_log_entries'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    service_request_id: Mapped[int] = mapped_column(ForeignKey('service_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # [{url, public_id, type}]
    media: Mapped[List[dict]] = mapped_column(JSON, default=list)
    author: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    service_request = relationship('ServiceRequest', back_populates='customer_log')

__all__ = ['CustomerLogEntry']
