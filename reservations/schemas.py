from pydantic import BaseModel, Field
from typing import List, Optional
import datetime

from .models import BookingStatus, UserRole


class Principal(BaseModel):
    """The authenticated caller, as asserted by the auth service's token."""
    user_id: int
    role: UserRole
    is_system: bool = False


SYSTEM_PRINCIPAL = Principal(user_id=0, role=UserRole.ADMIN, is_system=True)


class BookingBase(BaseModel):
    property_id: int
    check_in: datetime.date
    check_out: datetime.date
    guest_count: int = Field(ge=1)
    special_requests: Optional[str] = Field(default=None, max_length=2000)


class BookingCreate(BookingBase):
    # user_id comes from the JWT token, total_price is always computed server side
    pass


class BookingRead(BookingBase):
    id: int
    user_id: int
    total_price: int
    status: BookingStatus
    created_at: datetime.datetime
    updated_at: datetime.datetime

    class Config:
        from_attributes = True


class BookingTransition(BaseModel):
    status: BookingStatus


class BookingFilters(BaseModel):
    status: Optional[List[BookingStatus]] = None
    # Bookings whose stay overlaps [date_from, date_to)
    date_from: Optional[datetime.date] = None
    date_to: Optional[datetime.date] = None
    skip: int = Field(default=0, ge=0)
    limit: int = Field(default=100, ge=1, le=500)


class NightAvailability(BaseModel):
    date: datetime.date
    available: bool
    price: int


class AvailabilityRead(BaseModel):
    property_id: int
    check_in: datetime.date
    check_out: datetime.date
    nights: List[NightAvailability]
    blocked: List[datetime.date]
    # Quote for the whole stay; None when any night is blocked
    total_price: Optional[int] = None


class AvailabilityOverrideSet(BaseModel):
    is_available: bool = True
    price_override: Optional[int] = Field(default=None, gt=0)


class AvailabilityOverrideRead(BaseModel):
    property_id: int
    date: datetime.date
    is_available: bool
    price_override: Optional[int] = None

    class Config:
        from_attributes = True
