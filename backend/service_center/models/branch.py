from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, DateTime
from .authz import Base, utcnow


class Branch(Base):
    """Physical service location ("cabang"). Names are unique ignoring case."""
    __tablename__ = 'branches'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    # lower(name), kept unique so "Jakarta" and "jakarta " cannot coexist
    name_key: Mapped[str] = mapped_column(String(120), nullable=False, unique=True, index=True)
    manager_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @staticmethod
    def key_for(name: str) -> str:
        return ' '.join((name or '').split()).lower()

__all__ = ['Branch']
