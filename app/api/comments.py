# api/comments.py
# Update and delete comments by id. Creating and listing live under /recipes/{id}/comments.

import logging
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app import crud
from app import schemas
from app import models
from app.db.session import get_db
from app.api.auth import get_current_user

router = APIRouter()

logger = logging.getLogger(__name__)


@router.put("/{comment_id}", response_model=schemas.CommentResponse)
def update_comment(
    comment_id: UUID,
    comment_update: schemas.CommentUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """
    Update a comment. Only the author of the comment can update it.
    """
    logger.debug(f"User {current_user.id} is updating comment {comment_id}")
    db_comment = crud.update_comment(db, comment_id, current_user.id, comment_update.content)
    return {"message": "Comment updated successfully", "comment": db_comment}


@router.delete("/{comment_id}", response_model=schemas.Message)
def delete_comment(
    comment_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """
    Delete a comment. Only the author of the comment can delete it.
    """
    logger.debug(f"User {current_user.id} is deleting comment {comment_id}")
    crud.delete_comment(db, comment_id, current_user.id)
    return {"message": "Comment removed successfully"}
