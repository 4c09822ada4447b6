from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from rento import crud, notification_service
from rento.exceptions import NotFoundError
from rento.models import NotificationType


def add_notification(db_session, user_id="renter-1"):
    return crud.create_notification(
        db_session,
        user_id=user_id,
        notification_type=NotificationType.BOOKING_APPROVED,
        title="Booking Approved",
        message="approved",
        data={"booking_id": "b-1", "item_id": "i-1", "action": "booking_approved"},
    )


def test_count_unread_reflects_store(db_session):
    add_notification(db_session)
    add_notification(db_session)
    add_notification(db_session, user_id="someone-else")

    assert notification_service.count_unread(db_session, "renter-1") == 2


def test_count_unread_returns_zero_on_store_error():
    mock_db = MagicMock(spec=Session)
    mock_db.query.side_effect = OperationalError("SELECT", {}, Exception("gone"))

    assert notification_service.count_unread(mock_db, "renter-1") == 0
    mock_db.rollback.assert_called_once()


def test_mark_read_is_idempotent(db_session):
    notification = add_notification(db_session)

    first = notification_service.mark_read(db_session, notification.id, "renter-1")
    second = notification_service.mark_read(db_session, notification.id, "renter-1")

    assert first.read is True
    assert second.read is True
    assert notification_service.count_unread(db_session, "renter-1") == 0


def test_mark_read_of_other_users_notification(db_session):
    notification = add_notification(db_session, user_id="owner-1")

    with pytest.raises(NotFoundError):
        notification_service.mark_read(db_session, notification.id, "renter-1")


def test_mark_all_read_then_count_is_zero(db_session):
    for _ in range(3):
        add_notification(db_session)
    other = add_notification(db_session, user_id="owner-1")

    assert notification_service.mark_all_read(db_session, "renter-1") == 3
    assert notification_service.count_unread(db_session, "renter-1") == 0
    # Other users are untouched
    assert crud.get_notification(db_session, other.id, "owner-1").read is False


def test_notification_after_mark_all_stays_unread(db_session):
    add_notification(db_session)
    notification_service.mark_all_read(db_session, "renter-1")

    add_notification(db_session)

    assert notification_service.count_unread(db_session, "renter-1") == 1


def test_list_notifications_limit(db_session):
    for _ in range(4):
        add_notification(db_session)

    assert len(notification_service.list_notifications(db_session, "renter-1", limit=3)) == 3


def test_delete_notification_only_by_recipient(db_session):
    notification = add_notification(db_session)

    with pytest.raises(NotFoundError):
        notification_service.delete_notification(db_session, notification.id, "owner-1")

    notification_service.delete_notification(db_session, notification.id, "renter-1")
    assert crud.get_notification(db_session, notification.id, "renter-1") is None
