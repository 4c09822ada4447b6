import json
from unittest.mock import MagicMock

from sqlalchemy.orm import Session

from rento import models, notification_fanout
from rento.alert_dispatcher import AlertDispatcher, OutboxAlertDispatcher
from rento.config import settings
from rento.models import NotificationType

from conftest import notifications_for


def test_render_templates():
    title, message = notification_fanout.render_template(
        NotificationType.BOOKING_APPROVED, owner_name="Ana", item_title="Drill"
    )
    assert title == "Booking Approved"
    assert message == 'Ana approved your booking for "Drill"'

    title, message = notification_fanout.render_template(NotificationType.LISTING_DELETED, item_title="Drill")
    assert title == "Listing Deleted"
    assert message == 'Your booking for "Drill" was cancelled because the listing was deleted'


def test_status_change_uses_profile_names(db_session, make_item, make_booking, make_profile, dispatcher):
    make_profile("owner-1", name="Olivia")
    item = make_item()
    booking = make_booking(item)

    notification = notification_fanout.notify_booking_status_change(
        db_session, dispatcher, booking, item, NotificationType.BOOKING_REJECTED, "renter-1"
    )

    assert notification.user_id == "renter-1"
    assert notification.title == "Booking Rejected"
    assert notification.message == 'Olivia rejected your booking for "Camping Tent"'
    assert notification.data == {"booking_id": booking.id, "item_id": item.id, "action": "booking_rejected"}
    assert notification.read is False


def test_status_change_falls_back_without_profile(db_session, make_item, make_booking, dispatcher):
    item = make_item()
    booking = make_booking(item)

    notification = notification_fanout.notify_booking_status_change(
        db_session, dispatcher, booking, item, NotificationType.BOOKING_CANCELLED, "owner-1"
    )

    assert notification.message == 'A Renter cancelled the booking for "Camping Tent"'


def test_dispatch_persists_then_alerts(db_session, dispatcher):
    data = {"booking_id": "b-1", "item_id": "i-1", "action": "booking_approved"}

    notification = notification_fanout.dispatch_notification(
        db_session, dispatcher, "renter-1", NotificationType.BOOKING_APPROVED, "Booking Approved", "ok", data
    )

    assert notifications_for(db_session, "renter-1") == [notification]
    assert dispatcher.alerts == [{
        "user_id": "renter-1",
        "title": "Booking Approved",
        "body": "ok",
        "notification_id": notification.id,
        "data": data,
    }]


def test_dispatch_swallows_persistence_failure(mocker):
    mock_db = MagicMock(spec=Session)
    mocker.patch("rento.notification_fanout.crud.create_notification", side_effect=Exception("db down"))
    mock_dispatcher = MagicMock(spec=AlertDispatcher)

    result = notification_fanout.dispatch_notification(
        mock_db, mock_dispatcher, "renter-1", NotificationType.BOOKING_APPROVED, "t", "m", {}
    )

    assert result is None
    mock_db.rollback.assert_called_once()
    mock_dispatcher.schedule_local_notification.assert_not_called()


def test_dispatch_swallows_alert_failure(mocker):
    mock_db = MagicMock(spec=Session)
    stored = models.Notification(id="n-1", user_id="renter-1")
    mocker.patch("rento.notification_fanout.crud.create_notification", return_value=stored)
    mock_dispatcher = MagicMock(spec=AlertDispatcher)
    mock_dispatcher.schedule_local_notification.side_effect = RuntimeError("push down")

    result = notification_fanout.dispatch_notification(
        mock_db, mock_dispatcher, "renter-1", NotificationType.BOOKING_APPROVED, "t", "m", {}
    )

    assert result is stored


def test_listing_deleted_continues_after_one_failure(mocker):
    """One renter failing must not stop the others from being told."""
    mock_db = MagicMock(spec=Session)
    item = models.RentalItem(id="i-1", title="Kayak", owner_id="owner-1")
    bookings = [
        models.Booking(id=f"b-{n}", item_id="i-1", renter_id=f"renter-{n}") for n in range(3)
    ]
    dispatch = mocker.patch(
        "rento.notification_fanout.dispatch_notification",
        side_effect=[MagicMock(), None, MagicMock()],
    )

    sent = notification_fanout.notify_listing_deleted(mock_db, MagicMock(spec=AlertDispatcher), item, bookings)

    assert sent == 2
    assert dispatch.call_count == 3
    recipients = [c.args[2] for c in dispatch.call_args_list]
    assert recipients == ["renter-0", "renter-1", "renter-2"]


def test_new_message_notification(db_session, make_profile, dispatcher):
    make_profile("sender-1", name="Sam")
    message = models.Message(id="m-1", sender_id="sender-1", receiver_id="receiver-1", content="hi")

    notification = notification_fanout.notify_new_message(db_session, dispatcher, message)

    assert notification.user_id == "receiver-1"
    assert notification.type == NotificationType.NEW_MESSAGE.value
    assert notification.message == "Sam sent you a message"
    assert notification.data == {"message_id": "m-1", "user_id": "sender-1", "action": "new_message"}


# --- Outbox-backed alerts ---

def test_outbox_dispatcher_queues_alert(db_session):
    OutboxAlertDispatcher(db_session).schedule_local_notification(
        "renter-1", "Booking Approved", "ok", "n-1", {"booking_id": "b-1"}
    )

    event = db_session.query(models.OutboxEvent).first()
    assert event is not None
    assert event.status == "PENDING"
    assert event.topic == settings.KAFKA_ALERT_TOPIC
    payload = json.loads(event.payload)
    assert payload == {
        "user_id": "renter-1",
        "notification_id": "n-1",
        "title": "Booking Approved",
        "body": "ok",
        "data": {"booking_id": "b-1"},
    }


def test_outbox_dispatcher_failure_is_logged_not_raised():
    mock_db = MagicMock(spec=Session)
    mock_db.commit.side_effect = Exception("db down")

    OutboxAlertDispatcher(mock_db).schedule_local_notification("renter-1", "t", "b", "n-1", {})

    mock_db.rollback.assert_called_once()
