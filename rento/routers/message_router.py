from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Annotated

from .. import schemas, messaging
from ..alert_dispatcher import AlertDispatcher, get_alert_dispatcher
from ..auth import CurrentUser, get_current_user
from ..database import get_db
from ..rate_limits import write_limiter, read_limiter

router = APIRouter(prefix="/messages", tags=["Messages"])


@router.post("/", response_model=schemas.MessageRead, status_code=status.HTTP_201_CREATED)
def send_message(
        message: schemas.MessageCreate,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
        rate_limit: None = Depends(write_limiter)
):
    return messaging.send_message(db, user.id, message.receiver_id, message.content, dispatcher)


@router.get("/conversations", response_model=List[schemas.MessageRead])
def read_conversations(
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter)
):
    return messaging.get_conversations(db, user.id)


@router.get("/unread-count", response_model=schemas.UnreadCount)
def read_unread_count(
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter)
):
    return {"count": messaging.count_unread_messages(db, user.id)}


@router.get("/{other_user_id}", response_model=List[schemas.MessageRead])
def read_messages(
        other_user_id: str,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter)
):
    return messaging.get_messages(db, user.id, other_user_id)


@router.post("/{other_user_id}/read", response_model=schemas.UnreadCount)
def mark_conversation_read(
        other_user_id: str,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter)
):
    messaging.mark_conversation_read(db, user.id, other_user_id)
    return {"count": messaging.count_unread_messages(db, user.id)}
