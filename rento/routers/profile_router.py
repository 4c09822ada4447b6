from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Annotated

from .. import schemas, crud
from ..auth import CurrentUser, get_current_user
from ..database import get_db
from ..exceptions import NotFoundError
from ..rate_limits import write_limiter, read_limiter

router = APIRouter(prefix="/profiles", tags=["Profiles"])


@router.get("/me", response_model=schemas.ProfileRead)
def read_my_profile(
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter)
):
    db_profile = crud.get_profile(db, user.id)
    if db_profile is None:
        raise NotFoundError("Profile not found.")
    return db_profile


@router.put("/me", response_model=schemas.ProfileRead)
def update_my_profile(
        profile: schemas.ProfileUpdate,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter)
):
    return crud.upsert_profile(db, user.id, user.email, profile.model_dump(exclude_unset=True))


@router.put("/me/push-token", response_model=schemas.ProfileRead)
def register_push_token(
        token: schemas.PushTokenUpdate,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter)
):
    """
    Store the device's push token so alerts can reach it.
    """
    return crud.upsert_profile(db, user.id, user.email, {"push_token": token.push_token})
