import logging
from fastapi import Depends
from sqlalchemy.orm import Session

from . import crud
from .config import settings
from .database import get_db

logger = logging.getLogger("rento")


class AlertDispatcher:
    """
    Side-effect boundary for local/push alerts.

    Alerts are fire-and-forget: implementations must never raise into the
    booking workflow.
    """

    def schedule_local_notification(
            self,
            user_id: str,
            title: str,
            body: str,
            notification_id: str,
            data: dict,
    ) -> None:
        raise NotImplementedError


class OutboxAlertDispatcher(AlertDispatcher):
    """
    Queues the alert in the outbox table. The outbox poller publishes it to
    Kafka and the push consumer delivers it to the user's device.
    """

    def __init__(self, db: Session):
        self.db = db

    def schedule_local_notification(self, user_id, title, body, notification_id, data):
        payload = {
            "user_id": user_id,
            "notification_id": notification_id,
            "title": title,
            "body": body,
            "data": data,
        }
        try:
            crud.create_outbox_event(self.db, settings.KAFKA_ALERT_TOPIC, payload)
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to queue alert for notification {notification_id}: {e}")
            self.db.rollback()


def get_alert_dispatcher(db: Session = Depends(get_db)) -> AlertDispatcher:
    return OutboxAlertDispatcher(db)
