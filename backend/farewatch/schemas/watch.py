from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from farewatch.domain import Cabin, TripType

_camel = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateWatchRequest(BaseModel):
    model_config = _camel

    user_id: str = "anon"
    origin: str = Field(min_length=3, max_length=10)
    destination: str = Field(min_length=3, max_length=10)
    start: date
    end: date
    trip_type: TripType = "roundtrip"
    cabin: Cabin = "ECONOMY"
    max_stops: int = Field(default=1, ge=0, le=5)
    adults: int = Field(default=1, ge=1, le=9)
    currency: Literal["USD"] = "USD"
    target_usd: float = Field(gt=0)
    flex_days: int = Field(default=0, ge=0, le=30)
    email: EmailStr | None = None
    provider: str | None = None

    @field_validator("origin", "destination")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("start")
    @classmethod
    def start_not_past(cls, v: date) -> date:
        if v < date.today():
            raise ValueError("Start date cannot be in the past")
        return v

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end < self.start:
            raise ValueError("End date must be on or after start date")
        return self


class UpdateWatchRequest(BaseModel):
    model_config = _camel

    active: bool | None = None
    target_usd: float | None = Field(default=None, gt=0)
    email: EmailStr | None = None
    max_stops: int | None = Field(default=None, ge=0, le=5)
    flex_days: int | None = Field(default=None, ge=0, le=30)

    @field_validator("active", "target_usd", "max_stops", "flex_days")
    @classmethod
    def not_null(cls, v):
        # Omit a field to leave it unchanged; only email may be cleared
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class WatchResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    user_id: str
    origin: str
    destination: str
    start: date
    end: date
    trip_type: str
    cabin: str
    max_stops: int
    adults: int
    currency: str
    target_usd: float
    flex_days: int
    active: bool
    last_best_usd: float | None = None
    last_notified_usd: float | None = None
    email: str | None = None
    provider: str
    last_provider: str | None = None
    last_source_link: str | None = None
    created_at: datetime
    updated_at: datetime
    version: int
