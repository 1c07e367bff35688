"""
Pydantic schemas for reminder scheduling output.
"""
from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field
from ..db.enums import NotificationChannel

class NotificationIntent(BaseModel):
    """One reminder that should go out today on one channel."""
    user_id: str
    channel: NotificationChannel
    state_key: str = Field(description="<card_key>:<credit_id>")
    due_date: date
    offset_days: int
    message: str

class ReminderRunResult(BaseModel):
    dry_run: bool
    count: int = Field(ge=0)
    to_send: Optional[List[NotificationIntent]] = None
    logged: Optional[int] = None
