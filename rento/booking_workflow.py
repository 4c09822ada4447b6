"""
Booking lifecycle.

A booking is created PENDING by a renter. From PENDING the owner may approve
(CONFIRMED) or reject (CANCELLED) it, and the renter may cancel it
(CANCELLED). Every other status is terminal for user actions. Status writes
are compare-and-swap, so of two concurrent transitions only one takes effect
and only that one fans out a notification.
"""
import datetime
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from sqlalchemy.orm import Session

from . import crud, models, notification_fanout
from .alert_dispatcher import AlertDispatcher
from .exceptions import ValidationError, NotFoundError, InvalidTransitionError, AuthorizationError
from .models import BookingStatus, NotificationType

logger = logging.getLogger("rento")


class BookingIntent(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"


class Role(str, Enum):
    OWNER = "owner"
    RENTER = "renter"


@dataclass(frozen=True)
class TransitionRule:
    actor: Role
    source: BookingStatus
    target: BookingStatus
    notification_type: NotificationType
    recipient: Role


TRANSITIONS = {
    BookingIntent.APPROVE: TransitionRule(
        actor=Role.OWNER,
        source=BookingStatus.PENDING,
        target=BookingStatus.CONFIRMED,
        notification_type=NotificationType.BOOKING_APPROVED,
        recipient=Role.RENTER,
    ),
    BookingIntent.REJECT: TransitionRule(
        actor=Role.OWNER,
        source=BookingStatus.PENDING,
        target=BookingStatus.CANCELLED,
        notification_type=NotificationType.BOOKING_REJECTED,
        recipient=Role.RENTER,
    ),
    BookingIntent.CANCEL: TransitionRule(
        actor=Role.RENTER,
        source=BookingStatus.PENDING,
        target=BookingStatus.CANCELLED,
        notification_type=NotificationType.BOOKING_CANCELLED,
        recipient=Role.OWNER,
    ),
}


def _parse_date(value: Union[datetime.date, str], field: str) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        try:
            return datetime.date.fromisoformat(value)
        except ValueError:
            pass
    raise ValidationError(f"{field} must be a calendar date (YYYY-MM-DD).")


def calculate_total_price(start_date: datetime.date, end_date: datetime.date, price: float) -> float:
    """
    Price for the rental period. Partial days round up and at least one day is charged.
    """
    days = math.ceil((end_date - start_date).total_seconds() / 86400)
    return max(1, days) * price


def _role_user_id(role: Role, booking: models.Booking, item: models.RentalItem) -> str:
    return item.owner_id if role is Role.OWNER else booking.renter_id


def create_booking(
        db: Session,
        item_id: str,
        renter_id: str,
        start_date: Union[datetime.date, str],
        end_date: Union[datetime.date, str],
        dispatcher: AlertDispatcher,
        message: Optional[str] = None,
) -> models.Booking:
    """
    Creates a PENDING booking for an available item and tells its owner.

    Raises NotFoundError if the item does not exist, ValidationError if the
    renter owns the item, the item is unavailable, the dates are invalid
    or the booking would start in the past.
    """
    item = crud.get_item(db, item_id)
    if item is None:
        raise NotFoundError("Item not found.")
    if renter_id == item.owner_id:
        raise ValidationError("You cannot book your own item.")
    if not item.is_available:
        raise ValidationError("This item is not available for booking.")

    start = _parse_date(start_date, "start_date")
    end = _parse_date(end_date, "end_date")
    if start >= end:
        raise ValidationError("Booking end date must be after start date.")
    if start < datetime.date.today():
        raise ValidationError("Booking cannot start in the past.")

    booking = crud.create_booking(
        db,
        item_id=item.id,
        renter_id=renter_id,
        start_date=start,
        end_date=end,
        total_price=calculate_total_price(start, end, item.price),
        message=message,
    )
    logger.info(f"Booking {booking.id} requested by {renter_id} for item {item.id}")

    notification_fanout.notify_booking_request(db, dispatcher, booking, item)
    return booking


def resolve_cancellation_intent(acting_user_id: str, booking: models.Booking, item: models.RentalItem) -> BookingIntent:
    """
    Works out whether moving a booking to CANCELLED is a rejection by the
    owner or a cancellation by the renter.
    """
    if acting_user_id == item.owner_id:
        return BookingIntent.REJECT
    if acting_user_id == booking.renter_id:
        return BookingIntent.CANCEL
    logger.warning(f"User {acting_user_id} is neither owner nor renter of booking {booking.id}")
    raise AuthorizationError("Only the item owner or the renter can cancel this booking.")


def intent_for_status(
        db: Session,
        booking_id: str,
        status: Union[BookingStatus, str],
        acting_user_id: str,
) -> BookingIntent:
    status = BookingStatus(status)
    if status is BookingStatus.CONFIRMED:
        return BookingIntent.APPROVE
    if status is BookingStatus.CANCELLED:
        booking = _get_booking(db, booking_id)
        return resolve_cancellation_intent(acting_user_id, booking, booking.item)
    raise InvalidTransitionError(f"Bookings cannot be moved to {status.value}.")


def _get_booking(db: Session, booking_id: str) -> models.Booking:
    booking = crud.get_booking(db, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found.")
    return booking


def transition_booking(
        db: Session,
        booking_id: str,
        intent: BookingIntent,
        acting_user_id: str,
        dispatcher: AlertDispatcher,
) -> models.Booking:
    """
    Applies a user intent to a booking and notifies the counterparty.

    Raises NotFoundError, AuthorizationError when the acting user does not
    hold the role the intent needs, or InvalidTransitionError when the booking
    is no longer in the source status. On any error the status is unchanged
    and nothing is notified.
    """
    rule = TRANSITIONS[BookingIntent(intent)]
    booking = _get_booking(db, booking_id)
    item = booking.item

    if acting_user_id != _role_user_id(rule.actor, booking, item):
        logger.warning(f"User {acting_user_id} tried to {intent.value} booking {booking.id} without the {rule.actor.value} role")
        raise AuthorizationError(f"Only the {rule.actor.value} can {intent.value} this booking.")

    if booking.status != rule.source:
        raise InvalidTransitionError(
            f"Cannot {intent.value} a booking that is {booking.status.value}."
        )

    if not crud.update_booking_status_if(db, booking.id, rule.source, rule.target):
        # Another transition won the race after our read
        db.refresh(booking)
        raise InvalidTransitionError(
            f"Cannot {intent.value} a booking that is {booking.status.value}."
        )

    db.refresh(booking)
    logger.info(f"Booking {booking.id} moved to {rule.target.value} by {acting_user_id} ({intent.value})")

    notification_fanout.notify_booking_status_change(
        db,
        dispatcher,
        booking,
        item,
        rule.notification_type,
        _role_user_id(rule.recipient, booking, item),
    )
    return booking


def approve_booking(db: Session, booking_id: str, acting_user_id: str, dispatcher: AlertDispatcher) -> models.Booking:
    return transition_booking(db, booking_id, BookingIntent.APPROVE, acting_user_id, dispatcher)


def reject_booking(db: Session, booking_id: str, acting_user_id: str, dispatcher: AlertDispatcher) -> models.Booking:
    return transition_booking(db, booking_id, BookingIntent.REJECT, acting_user_id, dispatcher)


def cancel_booking(db: Session, booking_id: str, acting_user_id: str, dispatcher: AlertDispatcher) -> models.Booking:
    return transition_booking(db, booking_id, BookingIntent.CANCEL, acting_user_id, dispatcher)


def delete_listing(db: Session, item_id: str, acting_user_id: str, dispatcher: AlertDispatcher) -> int:
    """
    Removes a listing, cancels the bookings that still hold it and tells each
    affected renter. Returns the number of renters notified.
    """
    item = crud.get_item(db, item_id)
    if item is None:
        raise NotFoundError("Item not found.")
    if item.owner_id != acting_user_id:
        logger.warning(f"User {acting_user_id} tried to delete item {item_id} owned by {item.owner_id}")
        raise AuthorizationError("Only the owner can delete this listing.")

    cancelled = crud.soft_delete_item(db, item)
    logger.info(f"Item {item.id} deleted; {len(cancelled)} active bookings cancelled")

    return notification_fanout.notify_listing_deleted(db, dispatcher, item, cancelled)


def complete_expired_bookings(db: Session, today: datetime.date) -> int:
    """
    Marks CONFIRMED bookings whose end date has passed as COMPLETED.
    Returns the number of bookings completed.
    """
    completed = 0
    for booking in crud.get_expired_confirmed_bookings(db, today):
        booking_id = booking.id
        if crud.update_booking_status_if(db, booking_id, BookingStatus.CONFIRMED, BookingStatus.COMPLETED):
            completed += 1
            logger.info(f"Booking {booking_id} completed.")
    return completed
