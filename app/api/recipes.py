# api/recipes.py
# Handles all API endpoints related to recipes, their ratings and their comments.

import logging
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session

# Import local modules
from app import crud
from app import filters
from app import schemas
from app import models
from app.db.session import get_db
from app.api.auth import get_current_user, get_optional_user
from app.core.config import settings
from app.core.exceptions import ImageHostError, NotFoundError, RecipeAPIError, ValidationError
from app.images import get_image_host, release_image

# Create an API router
router = APIRouter()

# Get a logger instance
logger = logging.getLogger(__name__)


def _visible_recipe(db: Session, recipe_id: UUID, viewer: Optional[models.User]) -> models.Recipe:
    """
    Unpublished recipes are only visible to their author.
    """
    db_recipe = crud.get_recipe(db, recipe_id=recipe_id)
    if db_recipe is None or (
        not db_recipe.is_published and (viewer is None or viewer.id != db_recipe.author_id)
    ):
        logger.warning(f"Recipe with ID {recipe_id} not found.")
        raise NotFoundError("Recipe not found")
    return db_recipe


def _hide_unpublished(db: Session, recipe_id: UUID, viewer: Optional[models.User]) -> None:
    """
    Rating and comment reads of an unpublished recipe look like reads of a missing one.
    A recipe that does not exist at all still yields an empty result.
    """
    if crud.get_recipe(db, recipe_id=recipe_id) is not None:
        _visible_recipe(db, recipe_id, viewer)


@router.get("/", response_model=schemas.RecipePage)
def read_recipes(
    search: Optional[str] = Query(default=None, description="Matches title, ingredients, author name or email"),
    author_id: Optional[UUID] = Query(default=None, alias="authorId"),
    preparation_time: Optional[str] = Query(
        default=None, alias="preparationTime", description="One of 0-30, 30-60, 60-120, 120+"
    ),
    min_rating: Optional[float] = Query(default=None, alias="minRating"),
    page: Optional[int] = Query(default=1),
    limit: Optional[int] = Query(default=settings.DEFAULT_PAGE_SIZE),
    sort_by: Optional[str] = Query(
        default="createdAt",
        alias="sortBy",
        description="createdAt, updatedAt, title, preparationTime, rating or averageRating",
    ),
    sort_order: Optional[str] = Query(default="desc", alias="sortOrder", description="asc or desc"),
    db: Session = Depends(get_db),
):
    """
    List published recipes with filtering, sorting and pagination.
    Each recipe includes its average rating and rating count.
    """
    recipe_filters = filters.RecipeFilters(
        search=search,
        author_id=author_id,
        preparation_time=preparation_time,
        min_rating=min_rating,
    )
    result = crud.get_recipes(
        db, filters_in=recipe_filters, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
    )
    return {
        "data": result.items,
        "pagination": {
            "page": result.page,
            "limit": result.limit,
            "total": result.total,
            "pages": result.pages,
        },
    }


@router.post("/", response_model=schemas.RecipeResponse, status_code=status.HTTP_201_CREATED)
def create_recipe(
        recipe: schemas.RecipeCreate,
        db: Session = Depends(get_db),
        current_user: models.User = Depends(get_current_user)
):
    """
    Create a new recipe for the currently authenticated user.
    """
    logger.debug(f"User {current_user.email} is creating a new recipe.")
    db_recipe = crud.create_user_recipe(db=db, recipe=recipe, user_id=current_user.id)
    return {"message": "Recipe created successfully", "recipe": db_recipe}


@router.get("/{recipe_id}", response_model=schemas.RecipeDetail)
def read_recipe(
        recipe_id: UUID,
        db: Session = Depends(get_db),
        viewer: Optional[models.User] = Depends(get_optional_user)
):
    """
    Retrieve a single recipe by its ID, with its rating summary and most recent comments.
    """
    logger.debug(f"Fetching recipe with ID: {recipe_id}")
    db_recipe = _visible_recipe(db, recipe_id, viewer)
    average, count = crud.get_average_rating(db, recipe_id)
    db_recipe.average_rating = average
    db_recipe.rating_count = count
    db_recipe.recent_comments = crud.get_recent_comments(db, recipe_id)
    return db_recipe


@router.put("/{recipe_id}", response_model=schemas.RecipeResponse)
def update_recipe(
        recipe_id: UUID,
        recipe: schemas.RecipeUpdate,
        db: Session = Depends(get_db),
        current_user: models.User = Depends(get_current_user),
):
    """
    Update a recipe. Only the author of the recipe can perform this action.
    """
    logger.debug(f"User {current_user.email} is updating recipe with ID: {recipe_id}")
    db_recipe = crud.update_recipe(db, recipe_id, current_user.id, recipe_update=recipe)
    return {"message": "Recipe updated successfully", "recipe": db_recipe}


@router.delete("/{recipe_id}", response_model=schemas.Message)
def delete_recipe(
        recipe_id: UUID,
        db: Session = Depends(get_db),
        current_user: models.User = Depends(get_current_user),
        image_host=Depends(get_image_host),
):
    """
    Delete a recipe with its ratings and comments. Only the author can perform this action.
    """
    logger.debug(f"User {current_user.email} is deleting recipe with ID: {recipe_id}")
    crud.delete_recipe(db, recipe_id, current_user.id, image_host=image_host)
    return {"message": "Recipe deleted successfully"}


# --- Image Endpoints ---

@router.put("/{recipe_id}/image", response_model=schemas.RecipeResponse)
def upload_recipe_image(
        recipe_id: UUID,
        image: UploadFile = File(...),
        db: Session = Depends(get_db),
        current_user: models.User = Depends(get_current_user),
        image_host=Depends(get_image_host),
):
    """
    Upload or replace the recipe image. The previous image is released best-effort.
    """
    crud.ensure_recipe_owner(crud.get_recipe(db, recipe_id), current_user.id)

    if not (image.content_type or "").startswith("image/"):
        raise ValidationError("Only image files are allowed")
    data = image.file.read(settings.MAX_IMAGE_BYTES + 1)
    if len(data) > settings.MAX_IMAGE_BYTES:
        raise ValidationError(
            f"File size too large. Maximum size is {settings.MAX_IMAGE_BYTES // (1024 * 1024)}MB"
        )
    if image_host is None:
        raise ImageHostError("Image uploads are not configured")

    stored = image_host.upload(data, filename=image.filename or "image", content_type=image.content_type)
    try:
        db_recipe = crud.update_recipe(
            db, recipe_id, current_user.id, image=stored, image_host=image_host
        )
    except RecipeAPIError:
        release_image(image_host, stored.public_id)
        raise
    return {"message": "Recipe image updated successfully", "recipe": db_recipe}


@router.delete("/{recipe_id}/image", response_model=schemas.RecipeResponse)
def delete_recipe_image(
        recipe_id: UUID,
        db: Session = Depends(get_db),
        current_user: models.User = Depends(get_current_user),
        image_host=Depends(get_image_host),
):
    """
    Remove the recipe image.
    """
    db_recipe = crud.update_recipe(db, recipe_id, current_user.id, image=None, image_host=image_host)
    return {"message": "Recipe image removed successfully", "recipe": db_recipe}


# --- Rating Endpoints ---

@router.post("/{recipe_id}/rate", response_model=schemas.RatingResponse, status_code=status.HTTP_201_CREATED)
def rate_recipe(
    recipe_id: UUID,
    rating: schemas.RatingCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """
    Rate a recipe. Each user can rate a recipe once.
    """
    _visible_recipe(db, recipe_id, current_user)
    db_rating = crud.rate_recipe(db, recipe_id=recipe_id, author_id=current_user.id, value=rating.value)
    return {"message": "Recipe rated successfully", "rating": db_rating}


@router.get("/{recipe_id}/rating", response_model=schemas.RatingSummary)
def read_recipe_rating(
    recipe_id: UUID,
    db: Session = Depends(get_db),
    viewer: Optional[models.User] = Depends(get_optional_user)
):
    """
    Average rating and count for a recipe, plus the caller's own rating when logged in.
    """
    _hide_unpublished(db, recipe_id, viewer)
    average, count = crud.get_average_rating(db, recipe_id)
    user_rating = None
    if viewer is not None:
        own = crud.get_user_rating(db, recipe_id, viewer.id)
        user_rating = own.value if own else None
    return {"average": average, "count": count, "user_rating": user_rating}


# --- Comment Endpoints ---

@router.get("/{recipe_id}/comments", response_model=schemas.CommentPage)
def read_comments(
    recipe_id: UUID,
    viewer: Optional[models.User] = Depends(get_optional_user),
    page: Optional[int] = Query(default=1),
    limit: Optional[int] = Query(default=settings.DEFAULT_PAGE_SIZE),
    sort_by: Optional[str] = Query(default="createdAt", alias="sortBy", description="createdAt or updatedAt"),
    sort_order: Optional[str] = Query(default="desc", alias="sortOrder", description="asc or desc"),
    db: Session = Depends(get_db),
):
    """
    Get a page of comments for a recipe.
    """
    _hide_unpublished(db, recipe_id, viewer)
    comments, total, pagination = crud.get_comments(
        db, recipe_id=recipe_id, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
    )
    pages = filters.page_count(total, pagination.limit)
    return {
        "data": comments,
        "pagination": {
            "page": pagination.page,
            "limit": pagination.limit,
            "total": total,
            "pages": pages,
            "has_next": pagination.page < pages,
            "has_prev": pagination.page > 1,
        },
    }


@router.post("/{recipe_id}/comments", response_model=schemas.CommentResponse, status_code=status.HTTP_201_CREATED)
def create_comment(
    recipe_id: UUID,
    comment: schemas.CommentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """
    Add a comment to a recipe.
    """
    _visible_recipe(db, recipe_id, current_user)
    db_comment = crud.create_comment(db, recipe_id=recipe_id, user_id=current_user.id, content=comment.content)
    return {"message": "Comment added successfully", "comment": db_comment}
