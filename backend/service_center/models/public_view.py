from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, DateTime, ForeignKey
from .authz import Base, utcnow


class PublicView(Base):
    """Unguessable token granting anonymous read access to one request."""
    __tablename__ = 'public_views'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    service_request_id: Mapped[int] = mapped_column(ForeignKey('service_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    service_request = relationship('ServiceRequest', back_populates='public_views')

    def is_active(self, now: Optional[datetime] = None) -> bool:
        if self.revoked_at is not None:
            return False
        if self.expires_at is None:
            return True
        now = now or utcnow()
        expires = self.expires_at if self.expires_at.tzinfo else self.expires_at.replace(tzinfo=timezone.utc)
        return expires > now

__all__ = ['PublicView']
