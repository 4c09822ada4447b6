from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, Union, Literal
import datetime

from .models import BookingStatus, NotificationType, PickupMethod


# --- Profiles ---

class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None


class PushTokenUpdate(BaseModel):
    push_token: str = Field(..., min_length=1)


class ProfileRead(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime.datetime

    class Config:
        from_attributes = True


# --- Rental items ---

class RentalItemBase(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    price: float = Field(..., gt=0, description="Price per day")
    category: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    address: Optional[str] = None
    available_from: Optional[datetime.date] = None
    available_to: Optional[datetime.date] = None
    pickup_method: Optional[PickupMethod] = None


class RentalItemCreate(RentalItemBase):
    # owner_id comes from the JWT token
    pass


class RentalItemUpdate(BaseModel):
    # owner_id is deliberately absent: ownership never changes
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    category: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    address: Optional[str] = None
    available_from: Optional[datetime.date] = None
    available_to: Optional[datetime.date] = None
    pickup_method: Optional[PickupMethod] = None
    is_available: Optional[bool] = None

    @field_validator("title", "description", "price", "is_available")
    @classmethod
    def reject_null(cls, value):
        # Omit a field to leave it unchanged; these columns cannot be cleared
        if value is None:
            raise ValueError("This field cannot be null.")
        return value


class RentalItemRead(RentalItemBase):
    id: str
    owner_id: str
    image_url: Optional[str] = None
    is_available: bool
    created_at: datetime.datetime
    updated_at: datetime.datetime

    class Config:
        from_attributes = True


# --- Bookings ---

class BookingCreate(BaseModel):
    # renter_id will come from the JWT token
    item_id: str
    start_date: datetime.date
    end_date: datetime.date
    message: Optional[str] = None


class BookingStatusUpdate(BaseModel):
    status: Literal["CONFIRMED", "CANCELLED"]


class BookingRead(BaseModel):
    id: str
    item_id: str
    renter_id: str
    start_date: datetime.date
    end_date: datetime.date
    total_price: float
    status: BookingStatus
    message: Optional[str] = None
    created_at: datetime.datetime
    updated_at: datetime.datetime

    class Config:
        from_attributes = True


class LenderStats(BaseModel):
    total_listings: int
    active_listings: int
    total_bookings: int
    pending_bookings: int
    monthly_earnings: float
    total_earnings: float


# --- Notifications ---

class NotificationRead(BaseModel):
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: Dict[str, Union[str, int, float]] = {}
    read: bool
    created_at: datetime.datetime
    updated_at: datetime.datetime

    class Config:
        from_attributes = True


class UnreadCount(BaseModel):
    count: int


class WishlistStatus(BaseModel):
    item_id: str
    in_wishlist: bool


# --- Messages ---

class MessageCreate(BaseModel):
    receiver_id: str
    content: str


class MessageRead(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    content: str
    is_read: bool
    created_at: datetime.datetime

    class Config:
        from_attributes = True
