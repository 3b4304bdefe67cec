from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

from donaro.models.fraud import LocationReading, Platform, RiskLevel


class CognitoUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sub: str  # The unique user ID from Cognito
    email: EmailStr
    email_verified: bool
    name: Optional[str] = None
    groups: list[str] = Field(default_factory=list, alias="cognito:groups")
    is_admin: bool = False

    @field_validator("groups", mode="before")
    @classmethod
    def split_groups(cls, value):
        # API Gateway flattens the claim to "admin" or "[admin editors]"
        if isinstance(value, str):
            return [g for g in value.strip("[]").replace(",", " ").split() if g]
        return value or []

class RegisterUserRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None

class UpdateUserRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None

class UserResponse(BaseModel):
    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    total_credits: int
    lifetime_credits: int
    withdrawable_credits: int
    total_donations: int

class FraudCheckRequest(BaseModel):
    category: str
    description: str
    location_reading: Optional[LocationReading] = None
    platform: Platform = "mobile"
    timestamp: Optional[datetime] = None

class FraudEvaluationResponse(BaseModel):
    is_fraudulent: bool
    risk_level: RiskLevel
    reasons: list[str]

class DonationCreateRequest(BaseModel):
    # Presence is checked by the service so every missing field is reported at once
    category: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[str] = None
    receiver: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    donation_photo: Optional[str] = None
    selfie_photo: Optional[str] = None

    location_reading: Optional[LocationReading] = None
    platform: Platform = "mobile"
    acknowledge_warnings: bool = False

class DonationResponse(BaseModel):
    donation_id: str
    user_id: str
    category: str
    title: str
    description: str
    quantity: str
    receiver: Optional[str] = None
    status: str
    credits: int
    date: str
    time: str
    location: str
    donation_photo: str
    selfie_photo: str
    created_at: datetime
    updated_at: datetime

class StatusUpdateRequest(BaseModel):
    status: str

class FinalizeDonationResponse(BaseModel):
    donation: DonationResponse
    user: Optional[UserResponse] = None

class WithdrawalCreateRequest(BaseModel):
    user_id: Optional[str] = None
    amount: int
    date: str

class WithdrawalResponse(BaseModel):
    withdrawal_id: str
    user_id: str
    amount: int
    status: str
    date: str
    created_at: datetime
    updated_at: datetime
