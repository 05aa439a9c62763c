"""
Bookable resources: rooms and event services
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional, Literal

Site = Literal["SPORTI-1", "SPORTI-2"]
RoomCategory = Literal["Standard", "VIP", "Family"]
ServiceType = Literal["Conference Room", "Main Function Hall", "Barbeque Area", "Training Room"]


class PriceTable(BaseModel):
    member: float = Field(..., ge=0, description="Rate for members, their family and batchmates")
    guest: float = Field(..., ge=0, description="Rate for other guests")


class OccupancyFields(BaseModel):
    """Cache of the booking currently holding the resource"""
    occupied: bool = False
    occupied_by: Optional[str] = None
    occupied_from: Optional[datetime] = None
    occupied_until: Optional[datetime] = None


# ── Rooms ────────────────────────────────────────────────────────────────────

class RoomBase(BaseModel):
    room_number: str = Field(..., min_length=1, description="Room number (e.g. '101')")
    category: RoomCategory
    floor: str = Field(..., min_length=1)
    site: Site
    price: PriceTable
    facilities: List[str] = Field(default_factory=list)
    description: str = ""


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    room_number: Optional[str] = None
    category: Optional[RoomCategory] = None
    floor: Optional[str] = None
    price: Optional[PriceTable] = None
    facilities: Optional[List[str]] = None
    description: Optional[str] = None


class RoomResponse(RoomBase, OccupancyFields):
    id: str = Field(alias="_id")
    is_blocked: bool = False
    created_at: datetime
    updated_at: datetime

    class Config:
        populate_by_name = True


# ── Services ─────────────────────────────────────────────────────────────────

class ServiceBase(BaseModel):
    name: str = Field(..., min_length=1)
    service_type: ServiceType
    site: Site
    capacity: int = Field(..., gt=0)
    price: PriceTable
    facilities: List[str] = Field(default_factory=list)
    description: Optional[str] = None


class ServiceCreate(ServiceBase):
    pass


class ServiceUpdate(BaseModel):
    name: Optional[str] = None
    capacity: Optional[int] = Field(None, gt=0)
    price: Optional[PriceTable] = None
    facilities: Optional[List[str]] = None
    description: Optional[str] = None


class ServiceResponse(ServiceBase, OccupancyFields):
    id: str = Field(alias="_id")
    is_blocked: bool = False
    created_at: datetime
    updated_at: datetime

    class Config:
        populate_by_name = True
