import datetime
import uuid
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, String, Float, Text, Boolean, Date, TIMESTAMP, ForeignKey, Index, Integer, JSON, UniqueConstraint
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from .database import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


class BookingStatus(str, PyEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


# Bookings in these states still hold the item
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


class NotificationType(str, PyEnum):
    BOOKING_REQUEST = "booking_request"
    BOOKING_APPROVED = "booking_approved"
    BOOKING_REJECTED = "booking_rejected"
    BOOKING_CANCELLED = "booking_cancelled"
    LISTING_DELETED = "listing_deleted"
    NEW_MESSAGE = "new_message"


class PickupMethod(str, PyEnum):
    OWNER_DELIVERY = "owner_delivery"
    RENTER_PICKUP = "renter_pickup"
    COURIER_SUPPORTED = "courier_supported"


# --- Profile Model ---
class Profile(Base):
    __tablename__ = "profiles"

    # Same id the identity provider puts in the token's "sub" claim
    id = Column(String(64), primary_key=True, index=True)
    email = Column(String(255), nullable=True)
    name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    push_token = Column(String(255), nullable=True)

    created_at = Column(TIMESTAMP, default=datetime.datetime.utcnow)
    updated_at = Column(TIMESTAMP, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)


# --- RentalItem Model (a listing) ---
class RentalItem(Base):
    __tablename__ = "rental_items"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    # Owner is a profile id; immutable after creation
    owner_id = Column(String(64), index=True, nullable=False)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Float, nullable=False)
    category = Column(String(100), index=True, nullable=True)
    location = Column(String(255), nullable=True)
    image_url = Column(String(1024), nullable=True)

    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    address = Column(String(255), nullable=True)
    available_from = Column(Date, nullable=True)
    available_to = Column(Date, nullable=True)
    pickup_method = Column(SQLEnum(PickupMethod), nullable=True)

    is_available = Column(Boolean, default=True, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(TIMESTAMP, default=datetime.datetime.utcnow)
    updated_at = Column(TIMESTAMP, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    bookings = relationship("Booking", back_populates="item")


# --- Booking Model ---
class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    item_id = Column(String(36), ForeignKey("rental_items.id"), index=True, nullable=False)
    # Profile id of the requesting user. No direct DB relationship is enforced.
    renter_id = Column(String(64), index=True, nullable=False)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_price = Column(Float, nullable=False)

    status = Column(SQLEnum(BookingStatus), default=BookingStatus.PENDING, nullable=False)
    message = Column(Text, nullable=True)

    created_at = Column(TIMESTAMP, default=datetime.datetime.utcnow)
    updated_at = Column(TIMESTAMP, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    item = relationship("RentalItem", back_populates="bookings")

    __table_args__ = (
        Index('ix_bookings_item_status', 'item_id', 'status'),
    )


# --- Notification Model ---
class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    # Recipient profile id
    user_id = Column(String(64), index=True, nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)

    # Flat deep-link payload: booking_id, item_id, action, ...
    data = Column(JSON, nullable=False, default=dict)
    read = Column(Boolean, default=False, nullable=False)

    created_at = Column(TIMESTAMP, default=datetime.datetime.utcnow)
    updated_at = Column(TIMESTAMP, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    __table_args__ = (
        Index('ix_notifications_user_read', 'user_id', 'read'),
    )


# --- Message Model ---
class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    sender_id = Column(String(64), index=True, nullable=False)
    receiver_id = Column(String(64), index=True, nullable=False)
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)

    created_at = Column(TIMESTAMP, default=datetime.datetime.utcnow)


# --- Wishlist Model ---
class WishlistEntry(Base):
    __tablename__ = "wishlist"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), index=True, nullable=False)
    item_id = Column(String(36), ForeignKey("rental_items.id"), nullable=False)

    created_at = Column(TIMESTAMP, default=datetime.datetime.utcnow)

    item = relationship("RentalItem")

    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_wishlist_user_item"),
    )


class OutboxEvent(Base):
    __tablename__ = "outbox_events"

    id = Column(Integer, primary_key=True, index=True)

    # Status to track if the event has been sent
    status = Column(String(20), default="PENDING", nullable=False)

    # The Kafka topic to send the message to
    topic = Column(String(255), nullable=False)

    # The full JSON payload to be sent
    payload = Column(Text, nullable=False)

    created_at = Column(TIMESTAMP, default=datetime.datetime.utcnow)

    # An index on 'status' will make the poller's query much faster
    __table_args__ = (
        Index('ix_outbox_events_status', 'status'),
    )
