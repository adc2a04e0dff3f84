# api/users.py
# User profile endpoints. Users may only modify or delete themselves.

import logging
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app import crud
from app import schemas
from app import models
from app.db.session import get_db
from app.api.auth import get_current_user
from app.core.exceptions import NotFoundError
from app.images import get_image_host

router = APIRouter()

logger = logging.getLogger(__name__)


@router.get("/", response_model=schemas.UserListResponse)
def read_users(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    """
    List users, newest first.
    """
    return {"message": "Users fetched successfully", "data": crud.get_users(db, skip=skip, limit=limit)}


@router.get("/{user_id}", response_model=schemas.UserDataResponse)
def read_user(user_id: UUID, db: Session = Depends(get_db)):
    """
    Get a single user's public profile.
    """
    db_user = crud.get_user(db, user_id=user_id)
    if db_user is None:
        raise NotFoundError("User not found")
    return {"message": "User fetched successfully", "data": db_user}


@router.put("/{user_id}", response_model=schemas.UserDataResponse)
def update_user(
    user_id: UUID,
    user_update: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Update the caller's own profile (name, email, avatar).
    """
    logger.debug(f"User {current_user.id} is updating user {user_id}")
    updated_user = crud.update_user(db, user_id, current_user.id, user_update)
    return {"message": "User updated successfully", "data": updated_user}


@router.delete("/{user_id}", response_model=schemas.Message)
def delete_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    image_host=Depends(get_image_host),
):
    """
    Delete the caller's own account with all their recipes, ratings and comments.
    """
    crud.delete_user(db, user_id, current_user.id, image_host=image_host)
    return {"message": "User deleted successfully"}
