"""
Event schemas.
"""

import datetime as dt
from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EventBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    location: str | None = Field(None, max_length=255)
    start_date: date = Field(..., description="Event date")
    start_time: time | None = None
    gender: str | None = Field(None, max_length=20, description="Eligibility filter")
    age_group: str | None = Field(None, max_length=50, description="Eligibility filter")
    is_team_event: bool = False
    price_per_person: Decimal | None = Field(None, ge=0)
    price_per_team: Decimal | None = Field(None, ge=0)
    max_team_size: int | None = Field(None, ge=1)
    hashtags: list[str] = Field(default_factory=list, description="Category tags")
    image_url: str | None = Field(None, max_length=512)
    is_featured: bool = False
    rules_and_guidelines: str | None = None


class EventCreate(EventBase):
    """Admin event creation."""

    @model_validator(mode="after")
    def check_pricing(self):
        if self.is_team_event and self.price_per_team is None:
            raise ValueError("price_per_team is required for team events")
        if not self.is_team_event and self.price_per_person is None:
            raise ValueError("price_per_person is required for individual events")
        return self


class EventUpdate(BaseModel):
    """Admin partial update. Only these fields can be changed."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    location: str | None = Field(None, max_length=255)
    start_date: date | None = None
    start_time: time | None = None
    gender: str | None = Field(None, max_length=20)
    age_group: str | None = Field(None, max_length=50)
    is_team_event: bool | None = None
    price_per_person: Decimal | None = Field(None, ge=0)
    price_per_team: Decimal | None = Field(None, ge=0)
    max_team_size: int | None = Field(None, ge=1)
    hashtags: list[str] | None = None
    image_url: str | None = Field(None, max_length=512)
    is_featured: bool | None = None
    rules_and_guidelines: str | None = None
    live: bool | None = None


class EventOut(EventBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    live: bool
    hashtags: list[str] | None = None
    created_at: datetime | None = None


class GalleryItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    image_url: str
    event_name: str | None = None
    image_location: str | None = None
    date: dt.date | None = None  # Field name shadows the type in the class body
    uploaded_at: datetime | None = None
