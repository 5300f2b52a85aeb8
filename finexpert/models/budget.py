import uuid
from datetime import datetime
from typing import Dict

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from ..engine.money import utcnow

DEFAULT_BUDGET_NAME = "Budget"


class Budget(SQLModel, table=True):
    __tablename__ = "budgets"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    owner_id: uuid.UUID = Field(index=True)

    name: str = Field(default=DEFAULT_BUDGET_NAME, max_length=100)
    total_amount: float = Field(gt=0)

    # {"Food": 300.0, "Transport": 100.0}
    allocation: Dict[str, float] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, index=True)
