import logging
from sqlalchemy.orm import Session

from . import crud, models, notification_fanout
from .alert_dispatcher import AlertDispatcher
from .exceptions import ValidationError

logger = logging.getLogger("rento")


def send_message(
        db: Session,
        sender_id: str,
        receiver_id: str,
        content: str,
        dispatcher: AlertDispatcher,
) -> models.Message:
    content = (content or "").strip()
    if not content:
        raise ValidationError("Message cannot be empty.")
    if sender_id == receiver_id:
        raise ValidationError("You cannot send a message to yourself.")

    message = crud.create_message(db, sender_id=sender_id, receiver_id=receiver_id, content=content)
    logger.info(f"Message {message.id} sent from {sender_id} to {receiver_id}")

    notification_fanout.notify_new_message(db, dispatcher, message)
    return message


def get_conversations(db: Session, user_id: str) -> list[models.Message]:
    """
    Latest message of each conversation the user is part of, newest first.
    """
    latest = {}
    for message in crud.get_messages_for_user(db, user_id):
        other_user_id = message.receiver_id if message.sender_id == user_id else message.sender_id
        # Rows arrive newest first, so the first one seen per counterpart wins
        latest.setdefault(other_user_id, message)
    return list(latest.values())


def get_messages(db: Session, user_id: str, other_user_id: str) -> list[models.Message]:
    return crud.get_messages_between(db, user_id, other_user_id)


def mark_conversation_read(db: Session, user_id: str, other_user_id: str) -> int:
    return crud.mark_conversation_read(db, user_id, other_user_id)


def count_unread_messages(db: Session, user_id: str) -> int:
    return crud.count_unread_messages(db, user_id)
