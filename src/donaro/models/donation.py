import uuid
from datetime import datetime, timezone
from pydantic import BaseModel, Field
from typing import Literal


DonationStatus = Literal["pending", "approved", "rejected"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Donation(BaseModel):
    user_id: str
    donation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    # Unknown categories are kept as submitted and earn the default tier
    category: str
    title: str
    description: str
    quantity: str
    receiver: str | None = None

    status: DonationStatus = "pending"
    credits: int

    date: str
    time: str
    location: str
    donation_photo: str
    selfie_photo: str

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
