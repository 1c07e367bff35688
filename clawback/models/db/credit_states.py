from __future__ import annotations
"""SQLAlchemy model for per-user credit tracking flags."""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .profiles import Profile
from sqlalchemy.sql import func
from clawback.database import Base


def make_state_key(card_key: str, credit_id: str) -> str:
    return f"{card_key}:{credit_id}"


class CreditState(Base):
    __tablename__ = "credit_states"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    # "<card_key>:<credit_id>"
    state_key: Mapped[str] = mapped_column(String, nullable=False, index=True)
    used: Mapped[bool] = mapped_column(Boolean, default=False)
    dont_care: Mapped[bool] = mapped_column(Boolean, default=False)
    remind: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    profile: Mapped["Profile"] = relationship("Profile", back_populates="credit_states")

    __table_args__ = (
        UniqueConstraint("user_id", "state_key", name="uq_credit_states_user_state"),
    )

    @property
    def wants_reminder(self) -> bool:
        return bool(self.remind) and not self.used and not self.dont_care
