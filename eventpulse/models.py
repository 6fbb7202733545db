from typing import Optional
from datetime import datetime
from .utils import now_utc
from sqlmodel import SQLModel, Field


class Recipient(SQLModel, table=True):
    """A contact. The birthday is stored as local midnight of the resolved date."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    email: str
    birthday: Optional[datetime] = None
    created_at: datetime | None = Field(default_factory=now_utc)


class CustomEvent(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    date: datetime
    # When true the event repeats every year on the same month/day.
    is_recurring: bool = Field(default=False)
    created_at: datetime | None = Field(default_factory=now_utc)
