import uuid
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field
from pydantic.alias_generators import to_camel

_camel = {"alias_generator": to_camel, "populate_by_name": True, "str_strip_whitespace": True}


class Passenger(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    date_of_birth: date
    gender: Literal["male", "female"]
    email: EmailStr | None = None
    phone: str | None = None

    model_config = _camel


class BookingRequest(BaseModel):
    flight_id: str = Field(min_length=1)
    provider: str = Field(min_length=1)
    booking_token: str | None = None  # opaque outside the matching adapter
    passengers: list[Passenger] = Field(min_length=1)
    contact_email: EmailStr
    contact_phone: str | None = None

    model_config = _camel


class BookingResult(BaseModel):
    success: bool
    booking_reference: str
    provider: str
    status: str
    total_price: float
    currency: str
    ticket_numbers: list[str] | None = None
    confirmation_url: str | None = None
    simulated: bool = False
    error: str | None = None

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class BookingRecordResponse(BaseModel):
    id: uuid.UUID
    booking_type: str
    status: str
    simulated: bool
    details: dict
    created_at: datetime

    model_config = {"from_attributes": True}
