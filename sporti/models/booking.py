"""
Booking model and schemas
Room and service reservations for members and officer-sponsored guests
"""
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional, Literal, Dict, Any
from datetime import datetime

from sporti.models.resource import RoomCategory, ServiceType, Site
from sporti.utils.helpers import to_utc_naive

BookingStatus = Literal["pending", "confirmed", "rejected", "cancelled", "completed"]
TargetStatus = Literal["confirmed", "rejected", "cancelled", "completed"]
PaymentStatus = Literal["pending", "paid"]
BookingFor = Literal["Self", "Guest"]
Relation = Literal["Self", "Spouse", "Children", "Parents", "Batchmate", "Friend", "Relative", "Acquaintance"]
Gender = Literal["Male", "Female", "Other"]

ALLOWED_RELATIONS: Dict[str, tuple] = {
    "Self": ("Self", "Spouse", "Children", "Parents"),
    "Guest": ("Batchmate", "Friend", "Relative", "Acquaintance", "Spouse"),
}

PHONE_PATTERN = r"^\d{10}$"


class OccupantDetails(BaseModel):
    name: str = Field(..., min_length=1)
    phone_number: str = Field(..., pattern=PHONE_PATTERN)
    gender: Gender
    location: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None

    @field_validator("name", "location")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class OfficerDetails(BaseModel):
    """Sponsoring officer, required when a non-member books"""
    name: str = Field(..., min_length=1)
    phone_number: str = Field(..., pattern=PHONE_PATTERN)
    designation: str = Field(..., min_length=1)
    gender: Optional[Gender] = None
    email: Optional[EmailStr] = None

    @field_validator("name", "designation")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class RoomBookingCreate(BaseModel):
    room_id: Optional[str] = Field(None, description="Room to book; may be left for admin assignment")
    check_in: datetime
    check_out: datetime
    site: Site
    room_type: RoomCategory
    booking_for: BookingFor
    relation: Relation
    occupant_details: OccupantDetails
    officer_details: Optional[OfficerDetails] = None
    total_cost: Optional[float] = Field(None, ge=0)

    @field_validator("check_in", "check_out", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return to_utc_naive(v)

    @model_validator(mode="after")
    def check_booking(self):
        if self.check_in >= self.check_out:
            raise ValueError("check_in must be before check_out")
        if self.relation not in ALLOWED_RELATIONS[self.booking_for]:
            raise ValueError(f"Invalid relation '{self.relation}' for booking_for '{self.booking_for}'")
        return self


class ServiceBookingCreate(BaseModel):
    service_id: str
    event_date: datetime
    duration_days: int = Field(1, ge=1)
    guest_count: Optional[int] = Field(None, gt=0)
    booking_for: BookingFor = "Self"
    relation: Relation = "Self"
    occupant_details: Optional[OccupantDetails] = None
    total_cost: Optional[float] = Field(None, ge=0)

    @field_validator("event_date", mode="before")
    @classmethod
    def parse_date(cls, v):
        return to_utc_naive(v)

    @model_validator(mode="after")
    def check_relation(self):
        if self.relation not in ALLOWED_RELATIONS[self.booking_for]:
            raise ValueError(f"Invalid relation '{self.relation}' for booking_for '{self.booking_for}'")
        return self


class StatusUpdate(BaseModel):
    status: TargetStatus
    remarks: Optional[str] = None
    room_id: Optional[str] = Field(None, description="Resource to assign when confirming")
    total_cost: Optional[float] = Field(None, ge=0)


class PaymentUpdate(BaseModel):
    payment_status: PaymentStatus


class BookingResponse(BaseModel):
    model_config = {"extra": "allow", "populate_by_name": True}

    id: str = Field(alias="_id")
    booking_code: str
    application_no: str
    booking_type: Literal["room", "service"]
    resource_id: Optional[str] = None
    site: Optional[str] = None
    room_type: Optional[RoomCategory] = None
    service_type: Optional[ServiceType] = None
    user_id: Optional[str] = None
    booking_for: BookingFor
    relation: Relation
    occupant_details: Optional[Dict[str, Any]] = None
    officer_details: Optional[Dict[str, Any]] = None
    check_in: datetime
    check_out: datetime
    total_cost: float = Field(..., ge=0)
    cost_source: Literal["derived", "supplied", "override"]
    status: BookingStatus
    payment_status: PaymentStatus
    remarks: Optional[str] = None
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
