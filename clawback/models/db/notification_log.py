from __future__ import annotations
"""SQLAlchemy model for the append-only reminder notification log.

No uniqueness constraint on purpose: each batch commit appends one row per
intent, and repeated runs on the same day produce repeated rows.
"""
from datetime import date
from sqlalchemy import Integer, String, Date, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from clawback.database import Base
from .enums import NotificationChannel

class NotificationLog(Base):
    __tablename__ = "notification_log"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    state_key: Mapped[str] = mapped_column(String, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    offset_days: Mapped[int] = mapped_column(Integer, nullable=False)
    channel: Mapped[NotificationChannel] = mapped_column(Enum(NotificationChannel), nullable=False)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())
