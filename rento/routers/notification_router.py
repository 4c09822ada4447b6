from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Annotated

from .. import schemas, notification_service
from ..auth import CurrentUser, get_current_user
from ..database import get_db
from ..rate_limits import write_limiter, read_limiter

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=List[schemas.NotificationRead])
def read_notifications(
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        limit: int = 50,
        rate_limit: None = Depends(read_limiter)
):
    return notification_service.list_notifications(db, user.id, limit=limit)


@router.get("/unread-count", response_model=schemas.UnreadCount)
def read_unread_count(
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter)
):
    return {"count": notification_service.count_unread(db, user.id)}


@router.post("/read-all", response_model=schemas.UnreadCount)
def mark_all_read(
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter)
):
    notification_service.mark_all_read(db, user.id)
    return {"count": notification_service.count_unread(db, user.id)}


@router.post("/{notification_id}/read", response_model=schemas.NotificationRead)
def mark_read(
        notification_id: str,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter)
):
    return notification_service.mark_read(db, notification_id, user.id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
        notification_id: str,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter)
):
    notification_service.delete_notification(db, notification_id, user.id)
