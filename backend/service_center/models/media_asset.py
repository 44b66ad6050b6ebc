from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, DateTime, ForeignKey
from .authz import Base, utcnow


class MediaAsset(Base):
    """Hosted file attached to one of a request's media fields."""
    __tablename__ = 'media_assets'
    FIELD_HANDOVER_PHOTO = 'handover_photo'
    FIELD_PICKUP_PHOTO = 'pickup_photo'
    FIELD_TRANSFER_PROOF = 'transfer_proof'
    FIELD_CUSTOMER_SIGNATURE = 'customer_signature'
    ALL_FIELDS = (FIELD_HANDOVER_PHOTO, FIELD_PICKUP_PHOTO, FIELD_TRANSFER_PROOF, FIELD_CUSTOMER_SIGNATURE)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    service_request_id: Mapped[int] = mapped_column(ForeignKey('service_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    field: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    url: Mapped[str] = mapped_column(String(512), nullable=False)
    public_id: Mapped[str] = mapped_column(String(255), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(16), nullable=False, default='image')
    created_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    service_request = relationship('ServiceRequest', back_populates='media_assets')

__all__ = ['MediaAsset']
