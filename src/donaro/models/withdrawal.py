import uuid
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Literal

from donaro.models.donation import utcnow


WithdrawalStatus = Literal["pending", "processed", "rejected"]


class Withdrawal(BaseModel):
    user_id: str
    withdrawal_id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    amount: int = Field(gt=0)
    status: WithdrawalStatus = "pending"
    date: str

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
