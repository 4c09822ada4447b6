import json
import datetime
from typing import Optional
from sqlalchemy import or_, and_
from sqlalchemy.orm import Session
from . import models, schemas


# --- Profiles ---

def get_profile(db: Session, user_id: str) -> Optional[models.Profile]:
    return db.query(models.Profile).filter(models.Profile.id == user_id).first()


def upsert_profile(db: Session, user_id: str, email: Optional[str], updates: dict) -> models.Profile:
    db_profile = get_profile(db, user_id)
    if db_profile is None:
        db_profile = models.Profile(id=user_id, email=email)
        db.add(db_profile)
    elif email and not db_profile.email:
        db_profile.email = email
    for field, value in updates.items():
        setattr(db_profile, field, value)
    db.commit()
    db.refresh(db_profile)
    return db_profile


# --- Rental items ---

def get_item(db: Session, item_id: str, include_deleted: bool = False) -> Optional[models.RentalItem]:
    query = db.query(models.RentalItem).filter(models.RentalItem.id == item_id)
    if not include_deleted:
        query = query.filter(models.RentalItem.is_deleted.is_(False))
    return query.first()


def get_available_items(db: Session, category: Optional[str] = None, skip: int = 0, limit: int = 100):
    query = db.query(models.RentalItem).filter(
        models.RentalItem.is_available.is_(True),
        models.RentalItem.is_deleted.is_(False),
    )
    if category:
        query = query.filter(models.RentalItem.category == category)
    return query.order_by(models.RentalItem.created_at.desc()).offset(skip).limit(limit).all()


def get_items_by_owner(db: Session, owner_id: str) -> list[models.RentalItem]:
    return db.query(models.RentalItem).filter(
        models.RentalItem.owner_id == owner_id,
        models.RentalItem.is_deleted.is_(False),
    ).order_by(models.RentalItem.created_at.desc()).all()


def create_item(db: Session, item: schemas.RentalItemCreate, owner_id: str) -> models.RentalItem:
    db_item = models.RentalItem(**item.model_dump(), owner_id=owner_id)
    db.add(db_item)
    db.commit()
    db.refresh(db_item)
    return db_item


def update_item(db: Session, db_item: models.RentalItem, updates: dict) -> models.RentalItem:
    for field, value in updates.items():
        setattr(db_item, field, value)
    db.commit()
    db.refresh(db_item)
    return db_item


# --- Bookings ---

def get_booking(db: Session, booking_id: str) -> Optional[models.Booking]:
    return db.query(models.Booking).filter(models.Booking.id == booking_id).first()


def create_booking(
        db: Session,
        item_id: str,
        renter_id: str,
        start_date: datetime.date,
        end_date: datetime.date,
        total_price: float,
        message: Optional[str] = None,
) -> models.Booking:
    """
    Inserts a new PENDING booking and returns it with its server-assigned fields.
    """
    db_booking = models.Booking(
        item_id=item_id,
        renter_id=renter_id,
        start_date=start_date,
        end_date=end_date,
        total_price=total_price,
        message=message,
        status=models.BookingStatus.PENDING,
    )
    db.add(db_booking)
    db.commit()
    db.refresh(db_booking)
    return db_booking


def get_bookings_by_renter(db: Session, renter_id: str, skip: int = 0, limit: int = 100):
    return db.query(models.Booking).filter(
        models.Booking.renter_id == renter_id
    ).order_by(models.Booking.created_at.desc()).offset(skip).limit(limit).all()


def get_bookings_by_item(db: Session, item_id: str) -> list[models.Booking]:
    return db.query(models.Booking).filter(
        models.Booking.item_id == item_id
    ).order_by(models.Booking.created_at.desc()).all()


def get_lender_bookings(db: Session, owner_id: str) -> list[models.Booking]:
    """
    All bookings placed on items the given user owns, newest first.
    """
    return db.query(models.Booking).join(models.RentalItem).filter(
        models.RentalItem.owner_id == owner_id
    ).order_by(models.Booking.created_at.desc()).all()


def update_booking_status_if(
        db: Session,
        booking_id: str,
        expected: models.BookingStatus,
        new: models.BookingStatus,
) -> bool:
    """
    Compare-and-swap status write. The row is only updated while it still holds
    the expected status.

    Returns True if the row was updated, False if the precondition no longer held.
    """
    updated = db.query(models.Booking).filter(
        models.Booking.id == booking_id,
        models.Booking.status == expected,
    ).update(
        {"status": new, "updated_at": datetime.datetime.utcnow()},
        synchronize_session=False,
    )
    db.commit()
    return updated == 1


def get_active_bookings_for_item(db: Session, item_id: str) -> list[models.Booking]:
    return db.query(models.Booking).filter(
        models.Booking.item_id == item_id,
        models.Booking.status.in_(models.ACTIVE_BOOKING_STATUSES),
    ).all()


def soft_delete_item(db: Session, db_item: models.RentalItem) -> list[models.Booking]:
    """
    Hides the listing and cancels the bookings that still hold it, in one commit.

    Returns the bookings that were active at deletion time.
    """
    active_bookings = get_active_bookings_for_item(db, db_item.id)
    booking_ids = [b.id for b in active_bookings]

    db_item.is_deleted = True
    db_item.is_available = False
    if booking_ids:
        db.query(models.Booking).filter(
            models.Booking.id.in_(booking_ids),
            models.Booking.status.in_(models.ACTIVE_BOOKING_STATUSES),
        ).update(
            {"status": models.BookingStatus.CANCELLED, "updated_at": datetime.datetime.utcnow()},
            synchronize_session=False,
        )
    db.commit()
    return active_bookings


def get_expired_confirmed_bookings(db: Session, today: datetime.date) -> list[models.Booking]:
    """
    Retrieves CONFIRMED bookings whose rental period ended before the given date.
    """
    return db.query(models.Booking).filter(
        models.Booking.status == models.BookingStatus.CONFIRMED,
        models.Booking.end_date < today,
    ).all()


def get_lender_stats(db: Session, owner_id: str, today: datetime.date) -> dict:
    listings = get_items_by_owner(db, owner_id)
    bookings = get_lender_bookings(db, owner_id)

    earning = [
        b for b in bookings
        if b.status in (models.BookingStatus.CONFIRMED, models.BookingStatus.COMPLETED)
    ]
    monthly = [
        b for b in earning
        if b.created_at.year == today.year and b.created_at.month == today.month
    ]
    return {
        "total_listings": len(listings),
        "active_listings": sum(1 for item in listings if item.is_available),
        "total_bookings": len(bookings),
        "pending_bookings": sum(1 for b in bookings if b.status == models.BookingStatus.PENDING),
        "monthly_earnings": sum(b.total_price for b in monthly),
        "total_earnings": sum(b.total_price for b in earning),
    }


# --- Notifications ---

def create_notification(
        db: Session,
        user_id: str,
        notification_type: models.NotificationType,
        title: str,
        message: str,
        data: dict,
) -> models.Notification:
    db_notification = models.Notification(
        user_id=user_id,
        type=notification_type.value,
        title=title,
        message=message,
        data=data,
        read=False,
    )
    db.add(db_notification)
    db.commit()
    db.refresh(db_notification)
    return db_notification


def get_notifications(db: Session, user_id: str, limit: int = 50) -> list[models.Notification]:
    return db.query(models.Notification).filter(
        models.Notification.user_id == user_id
    ).order_by(models.Notification.created_at.desc()).limit(limit).all()


def get_notification(db: Session, notification_id: str, user_id: str) -> Optional[models.Notification]:
    return db.query(models.Notification).filter(
        models.Notification.id == notification_id,
        models.Notification.user_id == user_id,
    ).first()


def count_unread_notifications(db: Session, user_id: str) -> int:
    return db.query(models.Notification).filter(
        models.Notification.user_id == user_id,
        models.Notification.read.is_(False),
    ).count()


def mark_notification_read(db: Session, db_notification: models.Notification) -> models.Notification:
    if not db_notification.read:
        db_notification.read = True
        db.commit()
        db.refresh(db_notification)
    return db_notification


def mark_all_notifications_read(db: Session, user_id: str) -> int:
    """
    Flips every unread notification of the user in a single UPDATE.
    Rows inserted after the statement runs are left unread.
    """
    updated = db.query(models.Notification).filter(
        models.Notification.user_id == user_id,
        models.Notification.read.is_(False),
    ).update(
        {"read": True, "updated_at": datetime.datetime.utcnow()},
        synchronize_session=False,
    )
    db.commit()
    return updated


def delete_notification(db: Session, db_notification: models.Notification):
    db.delete(db_notification)
    db.commit()


# --- Messages ---

def create_message(db: Session, sender_id: str, receiver_id: str, content: str) -> models.Message:
    db_message = models.Message(sender_id=sender_id, receiver_id=receiver_id, content=content)
    db.add(db_message)
    db.commit()
    db.refresh(db_message)
    return db_message


def get_messages_for_user(db: Session, user_id: str) -> list[models.Message]:
    return db.query(models.Message).filter(
        or_(models.Message.sender_id == user_id, models.Message.receiver_id == user_id)
    ).order_by(models.Message.created_at.desc()).all()


def get_messages_between(db: Session, user_id: str, other_user_id: str) -> list[models.Message]:
    return db.query(models.Message).filter(
        or_(
            and_(models.Message.sender_id == user_id, models.Message.receiver_id == other_user_id),
            and_(models.Message.sender_id == other_user_id, models.Message.receiver_id == user_id),
        )
    ).order_by(models.Message.created_at.asc()).all()


def mark_conversation_read(db: Session, user_id: str, other_user_id: str) -> int:
    updated = db.query(models.Message).filter(
        models.Message.sender_id == other_user_id,
        models.Message.receiver_id == user_id,
        models.Message.is_read.is_(False),
    ).update({"is_read": True}, synchronize_session=False)
    db.commit()
    return updated


def count_unread_messages(db: Session, user_id: str) -> int:
    return db.query(models.Message).filter(
        models.Message.receiver_id == user_id,
        models.Message.is_read.is_(False),
    ).count()


# --- Wishlist ---

def get_wishlist_entry(db: Session, user_id: str, item_id: str) -> Optional[models.WishlistEntry]:
    return db.query(models.WishlistEntry).filter(
        models.WishlistEntry.user_id == user_id,
        models.WishlistEntry.item_id == item_id,
    ).first()


def get_wishlist_items(db: Session, user_id: str) -> list[models.RentalItem]:
    """Saved items, most recently saved first. Deleted listings are left out."""
    return db.query(models.RentalItem).join(
        models.WishlistEntry, models.WishlistEntry.item_id == models.RentalItem.id
    ).filter(
        models.WishlistEntry.user_id == user_id,
        models.RentalItem.is_deleted.is_(False),
    ).order_by(models.WishlistEntry.created_at.desc()).all()


def add_to_wishlist(db: Session, user_id: str, item_id: str) -> models.WishlistEntry:
    existing = get_wishlist_entry(db, user_id, item_id)
    if existing is not None:
        return existing
    db_entry = models.WishlistEntry(user_id=user_id, item_id=item_id)
    db.add(db_entry)
    db.commit()
    db.refresh(db_entry)
    return db_entry


def remove_from_wishlist(db: Session, user_id: str, item_id: str) -> int:
    deleted = db.query(models.WishlistEntry).filter(
        models.WishlistEntry.user_id == user_id,
        models.WishlistEntry.item_id == item_id,
    ).delete(synchronize_session=False)
    db.commit()
    return deleted


# --- Outbox ---

def create_outbox_event(db: Session, topic: str, payload: dict):
    """
    Adds a PENDING event to the outbox table.
    Note: Does NOT commit. The caller is responsible for the commit.
    """
    db_outbox_event = models.OutboxEvent(
        topic=topic,
        payload=json.dumps(payload),
        status="PENDING"
    )
    db.add(db_outbox_event)
    return db_outbox_event
