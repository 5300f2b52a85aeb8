import uuid
from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from ..engine.money import utcnow


class Expense(SQLModel, table=True):
    __tablename__ = "expenses"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    owner_id: uuid.UUID = Field(index=True)

    amount: float = Field(gt=0)
    category: str = Field(min_length=1, max_length=100, index=True)
    # Set once at creation; only amount and category change afterwards.
    date: datetime = Field(default_factory=utcnow, sa_type=DateTime, index=True)

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
