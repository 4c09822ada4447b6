from datetime import date
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Annotated

from .. import schemas, crud, booking_workflow
from ..alert_dispatcher import AlertDispatcher, get_alert_dispatcher
from ..auth import CurrentUser, get_current_user
from ..database import get_db
from ..exceptions import NotFoundError, AuthorizationError
from ..rate_limits import write_limiter, read_limiter

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=schemas.BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
        booking: schemas.BookingCreate,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
        rate_limit: None = Depends(write_limiter)
):
    """
    Request a booking for the authenticated user. The item owner is notified.
    """
    try:
        return booking_workflow.create_booking(
            db,
            item_id=booking.item_id,
            renter_id=user.id,
            start_date=booking.start_date,
            end_date=booking.end_date,
            message=booking.message,
            dispatcher=dispatcher,
        )
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"An error occurred while creating the booking: {e}"
        )


@router.get("/", response_model=List[schemas.BookingRead])
def read_user_bookings(
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        skip: int = 0,
        limit: int = 100,
        rate_limit: None = Depends(read_limiter)
):
    """
    Get all bookings the authenticated user has placed as a renter.
    """
    return crud.get_bookings_by_renter(db=db, renter_id=user.id, skip=skip, limit=limit)


@router.get("/lender", response_model=List[schemas.BookingRead])
def read_lender_bookings(
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter)
):
    """
    Get all bookings placed on the authenticated user's listings.
    """
    return crud.get_lender_bookings(db=db, owner_id=user.id)


@router.get("/lender/stats", response_model=schemas.LenderStats)
def read_lender_stats(
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter)
):
    return crud.get_lender_stats(db=db, owner_id=user.id, today=date.today())


@router.get("/{booking_id}", response_model=schemas.BookingRead)
def read_booking(
        booking_id: str,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter)
):
    db_booking = crud.get_booking(db, booking_id)
    if db_booking is None:
        raise NotFoundError("Booking not found.")
    if user.id not in (db_booking.renter_id, db_booking.item.owner_id):
        raise AuthorizationError("Only the owner or the renter can view this booking.")
    return db_booking


@router.post("/{booking_id}/approve", response_model=schemas.BookingRead)
def approve_booking(
        booking_id: str,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
        rate_limit: None = Depends(write_limiter)
):
    return booking_workflow.approve_booking(db, booking_id, user.id, dispatcher)


@router.post("/{booking_id}/reject", response_model=schemas.BookingRead)
def reject_booking(
        booking_id: str,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
        rate_limit: None = Depends(write_limiter)
):
    return booking_workflow.reject_booking(db, booking_id, user.id, dispatcher)


@router.post("/{booking_id}/cancel", response_model=schemas.BookingRead)
def cancel_booking(
        booking_id: str,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
        rate_limit: None = Depends(write_limiter)
):
    return booking_workflow.cancel_booking(db, booking_id, user.id, dispatcher)


@router.patch("/{booking_id}/status", response_model=schemas.BookingRead)
def update_booking_status(
        booking_id: str,
        update: schemas.BookingStatusUpdate,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
        rate_limit: None = Depends(write_limiter)
):
    """
    Move a booking to CONFIRMED or CANCELLED. For CANCELLED, the caller's
    role decides whether this is a rejection (owner) or a cancellation (renter).
    """
    intent = booking_workflow.intent_for_status(db, booking_id, update.status, user.id)
    return booking_workflow.transition_booking(db, booking_id, intent, user.id, dispatcher)
