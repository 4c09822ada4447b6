from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Annotated

from .. import schemas, crud
from ..auth import CurrentUser, get_current_user
from ..database import get_db
from ..exceptions import NotFoundError
from ..rate_limits import write_limiter, read_limiter

router = APIRouter(prefix="/wishlist", tags=["Wishlist"])


@router.get("/", response_model=List[schemas.RentalItemRead])
def read_wishlist(
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter)
):
    return crud.get_wishlist_items(db, user.id)


@router.get("/{item_id}", response_model=schemas.WishlistStatus)
def read_wishlist_status(
        item_id: str,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter)
):
    entry = crud.get_wishlist_entry(db, user.id, item_id)
    return {"item_id": item_id, "in_wishlist": entry is not None}


@router.put("/{item_id}", response_model=schemas.WishlistStatus)
def add_to_wishlist(
        item_id: str,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter)
):
    """
    Save an item. Saving it again leaves the wishlist unchanged.
    """
    if crud.get_item(db, item_id) is None:
        raise NotFoundError("Item not found.")
    crud.add_to_wishlist(db, user.id, item_id)
    return {"item_id": item_id, "in_wishlist": True}


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_from_wishlist(
        item_id: str,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter)
):
    crud.remove_from_wishlist(db, user.id, item_id)
