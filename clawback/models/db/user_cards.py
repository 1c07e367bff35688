from __future__ import annotations
"""SQLAlchemy model for cards a user has saved to their dashboard."""
from datetime import date
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .profiles import Profile
from sqlalchemy.sql import func
from clawback.database import Base

class UserCard(Base):
    __tablename__ = "user_cards"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    card_key: Mapped[str] = mapped_column(String, nullable=False, index=True)
    # Cardmember-year anchor; reminders stay off until this is set.
    card_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    profile: Mapped["Profile"] = relationship("Profile", back_populates="cards")

    __table_args__ = (
        UniqueConstraint("user_id", "card_key", name="uq_user_cards_user_card"),
    )
