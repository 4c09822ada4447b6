import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud, models
from .exceptions import NotFoundError

logger = logging.getLogger("rento")


def list_notifications(db: Session, user_id: str, limit: int = 50) -> list[models.Notification]:
    return crud.get_notifications(db, user_id, limit=limit)


def count_unread(db: Session, user_id: str) -> int:
    """
    Live count of the user's unread notifications. Falls back to 0 if the
    store cannot be read.
    """
    try:
        return crud.count_unread_notifications(db, user_id)
    except SQLAlchemyError as e:
        logger.error(f"Error getting unread count for user {user_id}: {e}")
        db.rollback()
        return 0


def _get_own_notification(db: Session, notification_id: str, user_id: str) -> models.Notification:
    db_notification = crud.get_notification(db, notification_id, user_id)
    if db_notification is None:
        raise NotFoundError("Notification not found.")
    return db_notification


def mark_read(db: Session, notification_id: str, user_id: str) -> models.Notification:
    # Already-read notifications are returned unchanged
    return crud.mark_notification_read(db, _get_own_notification(db, notification_id, user_id))


def mark_all_read(db: Session, user_id: str) -> int:
    updated = crud.mark_all_notifications_read(db, user_id)
    logger.info(f"Marked {updated} notifications as read for user {user_id}")
    return updated


def delete_notification(db: Session, notification_id: str, user_id: str):
    crud.delete_notification(db, _get_own_notification(db, notification_id, user_id))
