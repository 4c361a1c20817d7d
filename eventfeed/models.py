from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Any

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ONE_MS = timedelta(milliseconds=1)


def to_millis(value: datetime) -> int:
    """Konversi datetime ke Unix milidetik (aritmetika integer, tanpa float)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - EPOCH) // ONE_MS


def from_millis(ms: int) -> datetime:
    return EPOCH + timedelta(milliseconds=ms)


# Rentang milidetik yang masih bisa direpresentasikan sebagai datetime
MIN_MILLIS = to_millis(datetime.min.replace(tzinfo=timezone.utc))
MAX_MILLIS = to_millis(datetime.max.replace(tzinfo=timezone.utc))


def clamp_millis(ms: int) -> int:
    return max(MIN_MILLIS, min(ms, MAX_MILLIS))


def truncate_millis(value: datetime) -> datetime:
    """Potong presisi di bawah milidetik dan normalisasi ke UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


# Event IoT (immutable setelah dibuat)
class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    device_id: str
    device_name: str
    type: str
    severity: str
    message: str
    timestamp: datetime
    location: str
    download_url: Optional[str] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> Any:
        # Format wire: Unix milidetik
        if isinstance(value, int) and not isinstance(value, bool):
            return from_millis(value)
        return value

    @field_validator("timestamp")
    @classmethod
    def _truncate_timestamp(cls, value: datetime) -> datetime:
        return truncate_millis(value)

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> int:
        return to_millis(value)

    @property
    def sort_key(self) -> tuple:
        # Kunci urutan kanonik (dipakai dengan reverse=True)
        return (self.timestamp, self.id)

    @property
    def is_critical(self) -> bool:
        return self.severity == "critical"


class Cursor(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: int
    event_id: str

    @classmethod
    def of(cls, event: Event) -> "Cursor":
        return cls(timestamp=to_millis(event.timestamp), event_id=event.id)


class EventPage(BaseModel):
    events: List[Event]
    has_next: bool
    next_cursor: Optional[Cursor] = None


class NewEventsCount(BaseModel):
    total_count: int
    critical_count: int


class SimulatedBatch(BaseModel):
    events: List[Event]
    count: int


class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None
    code: int


class UserProfile(BaseModel):
    id: str
    username: str
    email: str
    name: str
    role: str


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    token: str
    user: UserProfile
