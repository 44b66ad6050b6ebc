from __future__ import annotations
from datetime import datetime
from typing import Optional, List
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, JSON, DateTime, ForeignKey
from .authz import Base, utcnow


class WorkLogEntry(Base):
    """Technician progress note with optional photos/videos."""
    __tablename__ = 'work_log_entries'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    service_request_id: Mapped[int] = mapped_column(ForeignKey('service_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    detailed_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # [{id, url, public_id, type, caption}]
    media: Mapped[List[dict]] = mapped_column(JSON, default=list)
    author_email: Mapped[str] = mapped_column(String(128), nullable=False)
    author_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    service_request = relationship('ServiceRequest', back_populates='work_log')

__all__ = ['WorkLogEntry']
