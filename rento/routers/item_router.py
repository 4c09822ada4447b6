from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from typing import List, Annotated, Optional

from .. import schemas, crud, booking_workflow
from ..alert_dispatcher import AlertDispatcher, get_alert_dispatcher
from ..auth import CurrentUser, get_current_user
from ..database import get_db
from ..exceptions import NotFoundError, AuthorizationError, ValidationError
from ..models import RentalItem
from ..rate_limits import write_limiter, read_limiter
from ..storage import ObjectStorage, get_storage

router = APIRouter(prefix="/items", tags=["Items"])


def get_owned_item(db: Session, item_id: str, user: CurrentUser) -> RentalItem:
    db_item = crud.get_item(db, item_id)
    if db_item is None:
        raise NotFoundError("Item not found.")
    if db_item.owner_id != user.id:
        raise AuthorizationError("Only the owner can manage this listing.")
    return db_item


@router.post("/", response_model=schemas.RentalItemRead, status_code=status.HTTP_201_CREATED)
def create_item(
        item: schemas.RentalItemCreate,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter)
):
    return crud.create_item(db=db, item=item, owner_id=user.id)


@router.get("/", response_model=List[schemas.RentalItemRead])
def read_items(
        category: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
        db: Session = Depends(get_db)
):
    """
    Available listings, newest first.
    """
    return crud.get_available_items(db, category=category, skip=skip, limit=limit)


@router.get("/mine", response_model=List[schemas.RentalItemRead])
def read_my_items(
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter)
):
    return crud.get_items_by_owner(db, owner_id=user.id)


@router.get("/{item_id}", response_model=schemas.RentalItemRead)
def read_item(item_id: str, db: Session = Depends(get_db)):
    db_item = crud.get_item(db, item_id)
    if db_item is None:
        raise NotFoundError("Item not found.")
    return db_item


@router.patch("/{item_id}", response_model=schemas.RentalItemRead)
def update_item(
        item_id: str,
        updates: schemas.RentalItemUpdate,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter)
):
    db_item = get_owned_item(db, item_id, user)
    return crud.update_item(db, db_item, updates.model_dump(exclude_unset=True))


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(
        item_id: str,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
        rate_limit: None = Depends(write_limiter)
):
    """
    Delete a listing. Renters with pending or confirmed bookings are notified.
    """
    booking_workflow.delete_listing(db, item_id, user.id, dispatcher)


@router.put("/{item_id}/image", response_model=schemas.RentalItemRead)
async def upload_item_image(
        item_id: str,
        filename: str,
        request: Request,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        storage: ObjectStorage = Depends(get_storage),
        rate_limit: None = Depends(write_limiter)
):
    """
    Upload the raw request body as the listing's image.
    """
    db_item = get_owned_item(db, item_id, user)
    data = await request.body()
    if not data:
        raise ValidationError("Image body is empty.")
    if "/" in filename or filename in ("", ".", ".."):
        raise ValidationError("Invalid image filename.")

    path = f"items/{user.id}/{filename}"
    content_type = request.headers.get("Content-Type", "application/octet-stream")
    if not storage.upload(path, data, content_type):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to upload image. Please try again later."
        )
    return crud.update_item(db, db_item, {"image_url": storage.get_public_url(path)})


@router.get("/{item_id}/bookings", response_model=List[schemas.BookingRead])
def read_item_bookings(
        item_id: str,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter)
):
    db_item = get_owned_item(db, item_id, user)
    return crud.get_bookings_by_item(db, db_item.id)
