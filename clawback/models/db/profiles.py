from __future__ import annotations
"""SQLAlchemy model for user profiles (notification preferences + upgrade state)."""
from typing import TYPE_CHECKING
from sqlalchemy import String, DateTime, Boolean, JSON
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .user_cards import UserCard
    from .credit_states import CreditState
from sqlalchemy.sql import func
from clawback.database import Base
from .enums import PlanTier

class Profile(Base):
    __tablename__ = "profiles"
    # Identity provider user id (uuid string); we never mint these ourselves.
    id: Mapped[str] = mapped_column(String, primary_key=True, index=True)
    full_name: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    phone_e164: Mapped[str | None] = mapped_column(String, nullable=True)

    notif_email_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    notif_sms_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    sms_consent: Mapped[bool] = mapped_column(Boolean, default=False)
    default_offsets_days: Mapped[list[int] | None] = mapped_column(JSON, nullable=True)

    # Upgrade state written by the payment webhook
    is_pro: Mapped[bool] = mapped_column(Boolean, default=False)
    pro_activated_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    stripe_customer_id: Mapped[str | None] = mapped_column(String, nullable=True)
    stripe_checkout_session_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)

    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    cards: Mapped[list["UserCard"]] = relationship("UserCard", back_populates="profile", cascade="all, delete-orphan")
    credit_states: Mapped[list["CreditState"]] = relationship("CreditState", back_populates="profile", cascade="all, delete-orphan")

    @property
    def plan(self) -> PlanTier:
        return PlanTier.PRO if self.is_pro else PlanTier.FREE
