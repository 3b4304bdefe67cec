from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field, field_validator
from typing import Literal, NamedTuple

from donaro.models.donation import utcnow


Platform = Literal["mobile", "web"]


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)


_RISK_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH]


def higher_risk(a: RiskLevel, b: RiskLevel) -> RiskLevel:
    return a if a.rank >= b.rank else b


class Coordinates(NamedTuple):
    latitude: float
    longitude: float


def parse_coordinates(text: str | None) -> Coordinates | None:
    """Parse a stored ``"lat,lng"`` string; anything else yields None."""
    if not text:
        return None
    parts = text.split(",")
    if len(parts) != 2:
        return None
    try:
        lat, lng = float(parts[0]), float(parts[1])
    except ValueError:
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return Coordinates(lat, lng)


def as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class LocationReading(BaseModel):
    latitude: float
    longitude: float
    accuracy: float | None = None  # metres
    mocked: bool = False

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(self.latitude, self.longitude)

    def as_text(self) -> str:
        return f"{self.latitude},{self.longitude}"


class FraudCandidate(BaseModel):
    category: str
    description: str
    location: LocationReading | None = None
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class HistoryEntry(BaseModel):
    timestamp: datetime
    location: Coordinates | None = None
    description: str = ""
    status: str = "pending"

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @classmethod
    def from_item(cls, item: dict) -> "HistoryEntry":
        return cls(
            timestamp=datetime.fromisoformat(item["created_at"]),
            location=parse_coordinates(item.get("location")),
            description=item.get("description") or "",
            status=item.get("status", "pending"),
        )


class FraudEvaluation(BaseModel):
    is_fraudulent: bool = False
    risk_level: RiskLevel = RiskLevel.LOW
    reasons: list[str] = Field(default_factory=list)

    def flag(self, risk: RiskLevel, reason: str) -> None:
        self.risk_level = higher_risk(self.risk_level, risk)
        self.is_fraudulent = True
        self.reasons.append(reason)

    def merge(self, other: "FraudEvaluation") -> None:
        if not other.is_fraudulent:
            return
        for reason in other.reasons:
            self.flag(other.risk_level, reason)
