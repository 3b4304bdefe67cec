from datetime import datetime
from pydantic import BaseModel, Field

from donaro.models.donation import utcnow


class UserProfile(BaseModel):
    user_id: str  # The 'sub' from the Cognito JWT
    name: str | None = None
    email: str | None = None
    phone: str | None = None

    total_credits: int = 0
    lifetime_credits: int = 0
    withdrawable_credits: int = 0
    total_donations: int = 0

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
