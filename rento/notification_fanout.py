"""
Notification fanout.

Every dispatch persists a Notification row for the recipient and then hands
an alert to the AlertDispatcher. Both steps are best-effort: a failure is
logged and never propagates into the booking transition that caused it.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from . import crud, models
from .alert_dispatcher import AlertDispatcher
from .models import NotificationType

logger = logging.getLogger("rento")


TEMPLATES = {
    NotificationType.BOOKING_REQUEST: (
        "New Booking Request",
        '{renter_name} wants to rent your "{item_title}"',
    ),
    NotificationType.BOOKING_APPROVED: (
        "Booking Approved",
        '{owner_name} approved your booking for "{item_title}"',
    ),
    NotificationType.BOOKING_REJECTED: (
        "Booking Rejected",
        '{owner_name} rejected your booking for "{item_title}"',
    ),
    NotificationType.BOOKING_CANCELLED: (
        "Booking Cancelled",
        '{renter_name} cancelled the booking for "{item_title}"',
    ),
    NotificationType.LISTING_DELETED: (
        "Listing Deleted",
        'Your booking for "{item_title}" was cancelled because the listing was deleted',
    ),
    NotificationType.NEW_MESSAGE: (
        "New Message",
        "{sender_name} sent you a message",
    ),
}

# Deep-link "action" for each notification type
ACTIONS = {
    NotificationType.BOOKING_REQUEST: "booking_created",
    NotificationType.BOOKING_APPROVED: "booking_approved",
    NotificationType.BOOKING_REJECTED: "booking_rejected",
    NotificationType.BOOKING_CANCELLED: "booking_cancelled",
    NotificationType.LISTING_DELETED: "listing_deleted",
    NotificationType.NEW_MESSAGE: "new_message",
}


def render_template(notification_type: NotificationType, **context) -> tuple[str, str]:
    title, message = TEMPLATES[notification_type]
    return title, message.format(**context)


def _display_name(db: Session, user_id: str, fallback: str) -> str:
    try:
        profile = crud.get_profile(db, user_id)
    except Exception as e:
        logger.error(f"Failed to load profile {user_id} for notification: {e}")
        db.rollback()
        return fallback
    if profile is None or not profile.name:
        return fallback
    return profile.name


def dispatch_notification(
        db: Session,
        dispatcher: AlertDispatcher,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        data: dict,
) -> Optional[models.Notification]:
    """
    Persists the notification, then fires the alert.

    Returns the stored notification, or None if it could not be persisted.
    """
    try:
        notification = crud.create_notification(
            db,
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            message=message,
            data=data,
        )
    except Exception as e:
        logger.error(f"Failed to persist {notification_type.value} notification for user {user_id}: {e}")
        db.rollback()
        return None

    try:
        dispatcher.schedule_local_notification(user_id, title, message, notification.id, data)
    except Exception as e:
        logger.error(f"Failed to dispatch alert for notification {notification.id}: {e}")

    logger.info(f"Sent {notification_type.value} notification {notification.id} to user {user_id}")
    return notification


def booking_payload(booking: models.Booking, notification_type: NotificationType) -> dict:
    return {
        "booking_id": booking.id,
        "item_id": booking.item_id,
        "action": ACTIONS[notification_type],
    }


def notify_booking_request(
        db: Session,
        dispatcher: AlertDispatcher,
        booking: models.Booking,
        item: models.RentalItem,
) -> Optional[models.Notification]:
    """Tells the item owner a renter has asked for their item."""
    notification_type = NotificationType.BOOKING_REQUEST
    title, message = render_template(
        notification_type,
        renter_name=_display_name(db, booking.renter_id, "Someone"),
        item_title=item.title,
    )
    data = booking_payload(booking, notification_type)
    data["user_id"] = booking.renter_id
    return dispatch_notification(db, dispatcher, item.owner_id, notification_type, title, message, data)


def notify_booking_status_change(
        db: Session,
        dispatcher: AlertDispatcher,
        booking: models.Booking,
        item: models.RentalItem,
        notification_type: NotificationType,
        recipient_id: str,
) -> Optional[models.Notification]:
    title, message = render_template(
        notification_type,
        owner_name=_display_name(db, item.owner_id, "The Owner"),
        renter_name=_display_name(db, booking.renter_id, "A Renter"),
        item_title=item.title,
    )
    data = booking_payload(booking, notification_type)
    return dispatch_notification(db, dispatcher, recipient_id, notification_type, title, message, data)


def notify_listing_deleted(
        db: Session,
        dispatcher: AlertDispatcher,
        item: models.RentalItem,
        bookings: list[models.Booking],
) -> int:
    """
    Notifies the renter of every given booking. Each recipient is independent:
    a failure for one renter does not stop the others.

    Returns the number of notifications stored.
    """
    notification_type = NotificationType.LISTING_DELETED
    title, message = render_template(notification_type, item_title=item.title)

    sent = 0
    for booking in bookings:
        try:
            data = booking_payload(booking, notification_type)
            renter_id = booking.renter_id
        except Exception as e:
            logger.error(f"Failed to read booking for listing {item.id} deletion notice: {e}")
            db.rollback()
            continue
        if dispatch_notification(db, dispatcher, renter_id, notification_type, title, message, data):
            sent += 1

    logger.info(f"Notified {sent}/{len(bookings)} renters about deletion of item {item.id}")
    return sent


def notify_new_message(
        db: Session,
        dispatcher: AlertDispatcher,
        message: models.Message,
) -> Optional[models.Notification]:
    notification_type = NotificationType.NEW_MESSAGE
    title, body = render_template(
        notification_type,
        sender_name=_display_name(db, message.sender_id, "Someone"),
    )
    data = {
        "message_id": message.id,
        "user_id": message.sender_id,
        "action": ACTIONS[notification_type],
    }
    return dispatch_notification(db, dispatcher, message.receiver_id, notification_type, title, body, data)
