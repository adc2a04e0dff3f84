# crud.py
# Contains the functions for Create, Read, Update, Delete (CRUD) operations.
# Every function raises the typed errors from app.core.exceptions; none of them know about HTTP.

import logging
import math
from typing import List, Optional, Tuple, Union
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from passlib.context import CryptContext

from app import filters
from app import models
from app import schemas
from app.core.config import settings
from app.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.images import StoredImage, release_image

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Get a logger instance
logger = logging.getLogger(__name__)

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 100
PREPARATION_TIME_MIN = 1
PREPARATION_TIME_MAX = 1440
COMMENT_MAX_LENGTH = 500
PASSWORD_MIN_LENGTH = 8
RECENT_COMMENTS = 5


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def normalize_text_list(value: Union[List[str], str, None]) -> List[str]:
    """
    Trim list items and drop blank ones. A single string is split on newlines.
    """
    if not value:
        return []
    if isinstance(value, str):
        value = value.splitlines()
    return [item.strip() for item in value if item and item.strip()]


# --- Ownership checks ---

def ensure_recipe_owner(recipe: Optional[models.Recipe], caller_id: UUID) -> models.Recipe:
    if recipe is None:
        raise NotFoundError("Recipe not found")
    if recipe.author_id != caller_id:
        raise AuthorizationError("Not allowed to modify this recipe")
    return recipe


def ensure_comment_owner(comment: Optional[models.Comment], caller_id: UUID) -> models.Comment:
    if comment is None:
        raise NotFoundError("Comment not found")
    if comment.author_id != caller_id:
        raise AuthorizationError("Not allowed to modify this comment")
    return comment


def ensure_user_self(user: Optional[models.User], caller_id: UUID) -> models.User:
    if user is None:
        raise NotFoundError("User not found")
    if user.id != caller_id:
        raise AuthorizationError("Not allowed to modify this user")
    return user


# --- User CRUD Functions ---
def get_user(db: Session, user_id: UUID):
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(func.lower(models.User.email) == email.lower()).first()


def get_users(db: Session, skip: int = 0, limit: int = 100):
    return (
        db.query(models.User)
        .order_by(models.User.created_at.desc(), models.User.id)
        .offset(skip)
        .limit(limit)
        .all()
    )


def authenticate(db: Session, email: str, password: str) -> Optional[models.User]:
    user = get_user_by_email(db, email=email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


def create_user(db: Session, user: schemas.UserCreate):
    name = (user.name or "").strip()
    if not name:
        raise ValidationError("Name is required")
    if not user.password or len(user.password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")

    email = user.email.lower()
    if get_user_by_email(db, email=email):
        raise ConflictError("User with this email already exists")

    db_user = models.User(
        name=name,
        email=email,
        hashed_password=get_password_hash(user.password),
        image=user.image,
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"Concurrent signup for {email} rejected by unique constraint")
        raise ConflictError("User with this email already exists")
    db.refresh(db_user)
    logger.info(f"Created user {db_user.id}")
    return db_user


def update_user(db: Session, user_id: UUID, caller_id: UUID, user_update: schemas.UserUpdate):
    db_user = ensure_user_self(get_user(db, user_id), caller_id)

    update_data = user_update.model_dump(exclude_unset=True)
    if "name" in update_data:
        name = (update_data["name"] or "").strip()
        if not name:
            raise ValidationError("Name is required")
        db_user.name = name
    if update_data.get("email"):
        email = update_data["email"].lower()
        if email != db_user.email:
            if get_user_by_email(db, email=email):
                raise ConflictError("Email is already in use")
            db_user.email = email
    if "image" in update_data:
        db_user.image = update_data["image"]

    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email is already in use")
    db.refresh(db_user)
    return db_user


def delete_user(db: Session, user_id: UUID, caller_id: UUID, image_host=None):
    """
    Delete a user together with their recipes, ratings and comments in one transaction.
    Images of the deleted recipes are released afterwards, best-effort.
    """
    db_user = ensure_user_self(get_user(db, user_id), caller_id)
    public_ids = [r.image_public_id for r in db_user.recipes if r.image_public_id]

    db.delete(db_user)
    db.commit()
    logger.info(f"Deleted user {user_id} and {len(public_ids)} hosted image(s) pending release")

    for public_id in public_ids:
        release_image(image_host, public_id)


# --- Recipe CRUD Functions ---

def _validate_title(title: Optional[str]) -> str:
    title = (title or "").strip()
    if not TITLE_MIN_LENGTH <= len(title) <= TITLE_MAX_LENGTH:
        raise ValidationError(
            f"Title must be between {TITLE_MIN_LENGTH} and {TITLE_MAX_LENGTH} characters"
        )
    return title


def _validate_preparation_time(preparation_time) -> int:
    if (
        isinstance(preparation_time, bool)
        or not isinstance(preparation_time, int)
        or not PREPARATION_TIME_MIN <= preparation_time <= PREPARATION_TIME_MAX
    ):
        raise ValidationError(
            f"Preparation time must be between {PREPARATION_TIME_MIN} and "
            f"{PREPARATION_TIME_MAX} minutes"
        )
    return preparation_time


def _validate_text_list(value, label: str) -> List[str]:
    items = normalize_text_list(value)
    if not items:
        raise ValidationError(f"{label} are required")
    return items


def get_recipe(db: Session, recipe_id: UUID):
    """
    Retrieve a single recipe with its author.
    """
    logger.debug(f"Retrieving recipe with id {recipe_id}")
    return (
        db.query(models.Recipe)
        .options(joinedload(models.Recipe.author))
        .filter(models.Recipe.id == recipe_id)
        .first()
    )


def get_recipes(
    db: Session,
    filters_in: Optional[filters.RecipeFilters] = None,
    page: Optional[int] = 1,
    limit: Optional[int] = 10,
    sort_by: Optional[str] = "createdAt",
    sort_order: Optional[str] = "desc",
) -> filters.RecipePage:
    """
    Retrieve a page of published recipes; delegates to the listing engine.
    """
    return filters.list_recipes(
        db, filters=filters_in, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
    )


def create_user_recipe(
    db: Session,
    recipe: schemas.RecipeCreate,
    user_id: UUID,
    image: Optional[StoredImage] = None,
):
    """
    Create a new recipe owned by user_id.
    """
    logger.debug(f"Creating recipe: {recipe}")
    title = _validate_title(recipe.title)
    preparation_time = _validate_preparation_time(recipe.preparation_time)
    ingredients = _validate_text_list(recipe.ingredients, "Ingredients")
    steps = _validate_text_list(recipe.steps, "Steps")

    if get_user(db, user_id) is None:
        raise NotFoundError("Author not found")

    db_recipe = models.Recipe(
        title=title,
        ingredients=ingredients,
        steps=steps,
        preparation_time=preparation_time,
        is_published=recipe.is_published,
        author_id=user_id,
        image_url=image.url if image else None,
        image_public_id=image.public_id if image else None,
    )
    db.add(db_recipe)
    db.commit()
    db.refresh(db_recipe)
    logger.info(f"User {user_id} created recipe {db_recipe.id}")
    return db_recipe


_KEEP_IMAGE = object()


def update_recipe(
    db: Session,
    recipe_id: UUID,
    caller_id: UUID,
    recipe_update: Optional[schemas.RecipeUpdate] = None,
    image=_KEEP_IMAGE,
    image_host=None,
):
    """
    Update an existing recipe. Only the author may do this.

    ``image`` may be a StoredImage (replace) or None (remove). The previous hosted
    image is released after the update has been committed, best-effort.
    """
    logger.debug(f"Updating recipe {recipe_id} with: {recipe_update}")
    db_recipe = ensure_recipe_owner(get_recipe(db, recipe_id), caller_id)

    update_data = recipe_update.model_dump(exclude_unset=True) if recipe_update else {}
    if "title" in update_data:
        db_recipe.title = _validate_title(update_data["title"])
    if "preparation_time" in update_data:
        db_recipe.preparation_time = _validate_preparation_time(update_data["preparation_time"])
    if "ingredients" in update_data:
        db_recipe.ingredients = _validate_text_list(update_data["ingredients"], "Ingredients")
    if "steps" in update_data:
        db_recipe.steps = _validate_text_list(update_data["steps"], "Steps")
    if update_data.get("is_published") is not None:
        db_recipe.is_published = update_data["is_published"]

    previous_public_id = None
    if image is not _KEEP_IMAGE:
        previous_public_id = db_recipe.image_public_id
        db_recipe.image_url = image.url if image else None
        db_recipe.image_public_id = image.public_id if image else None

    db.add(db_recipe)
    db.commit()
    db.refresh(db_recipe)

    if previous_public_id and previous_public_id != db_recipe.image_public_id:
        release_image(image_host, previous_public_id)
    return db_recipe


def delete_recipe(db: Session, recipe_id: UUID, caller_id: UUID, image_host=None):
    """
    Delete a recipe from the database.
    Ratings and comments go in the same transaction; the hosted image is released afterwards.
    """
    db_recipe = ensure_recipe_owner(get_recipe(db, recipe_id), caller_id)
    public_id = db_recipe.image_public_id

    logger.debug(f"Deleting recipe {recipe_id}")
    db.delete(db_recipe)
    db.commit()

    release_image(image_host, public_id)


# --- Rating Functions ---

def validate_rating_value(value) -> float:
    """
    Check a rating value against the configured RATING_SCALE.
    "integer": whole numbers 1-5.
    "half": any value above 0 and up to 5, rounded half-up to the nearest 0.5 and
    clamped to 0.5-5, so 0.3 is stored as 0.5.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        value = None

    if settings.RATING_SCALE == "half":
        if value is None or not 0 < value <= 5:
            raise ValidationError("Rating value must be between 0.5 and 5")
        return min(max(math.floor(value * 2 + 0.5) / 2, 0.5), 5.0)

    if value is None or value != int(value) or not 1 <= value <= 5:
        raise ValidationError("Rating value must be between 1 and 5")
    return float(int(value))


def get_user_rating(db: Session, recipe_id: UUID, author_id: UUID):
    return (
        db.query(models.Rating)
        .filter(models.Rating.recipe_id == recipe_id, models.Rating.author_id == author_id)
        .first()
    )


def rate_recipe(db: Session, recipe_id: UUID, author_id: UUID, value) -> models.Rating:
    """
    Record a user's rating. A user rates a recipe at most once; a second attempt is a
    conflict and never overwrites the first.
    """
    value = validate_rating_value(value)
    if get_recipe(db, recipe_id) is None:
        raise NotFoundError("Recipe not found")

    if get_user_rating(db, recipe_id, author_id) is not None:
        raise ConflictError("User has already rated this recipe")

    db_rating = models.Rating(value=value, author_id=author_id, recipe_id=recipe_id)
    db.add(db_rating)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"Duplicate rating by {author_id} on {recipe_id} rejected by unique constraint")
        raise ConflictError("User has already rated this recipe")
    db.refresh(db_rating)
    logger.debug(f"User {author_id} rated recipe {recipe_id} with {value}")
    return db_rating


def get_average_rating(db: Session, recipe_id: UUID) -> Tuple[float, int]:
    """
    Return (average, count) for one recipe; (0.0, 0) when it has no ratings.
    """
    stats = filters.rating_stats_subquery(db, recipe_ids=[recipe_id])
    row = db.query(stats.c.average, stats.c.count).first()
    if row is None:
        return 0.0, 0
    return float(row.average or 0), int(row.count or 0)


# --- Comment Functions ---

def _validate_content(content: Optional[str]) -> str:
    content = (content or "").strip()
    if not content:
        raise ValidationError("Content is required")
    if len(content) > COMMENT_MAX_LENGTH:
        raise ValidationError(f"Content must be at most {COMMENT_MAX_LENGTH} characters")
    return content


def get_comment(db: Session, comment_id: UUID):
    return (
        db.query(models.Comment)
        .options(joinedload(models.Comment.author))
        .filter(models.Comment.id == comment_id)
        .first()
    )


def create_comment(db: Session, recipe_id: UUID, user_id: UUID, content: Optional[str]):
    content = _validate_content(content)
    if get_recipe(db, recipe_id) is None:
        raise NotFoundError("Recipe not found")

    if not settings.ALLOW_MULTIPLE_COMMENTS:
        existing = (
            db.query(models.Comment.id)
            .filter(models.Comment.recipe_id == recipe_id, models.Comment.author_id == user_id)
            .first()
        )
        if existing:
            raise ConflictError("You have already commented on this recipe")

    db_comment = models.Comment(content=content, author_id=user_id, recipe_id=recipe_id)
    db.add(db_comment)
    db.commit()
    db.refresh(db_comment)
    return db_comment


def update_comment(db: Session, comment_id: UUID, caller_id: UUID, content: Optional[str]):
    db_comment = ensure_comment_owner(get_comment(db, comment_id), caller_id)
    db_comment.content = _validate_content(content)
    db.add(db_comment)
    db.commit()
    db.refresh(db_comment)
    return db_comment


def delete_comment(db: Session, comment_id: UUID, caller_id: UUID):
    db_comment = ensure_comment_owner(get_comment(db, comment_id), caller_id)
    db.delete(db_comment)
    db.commit()


COMMENT_SORT_FIELDS = {
    "createdAt": models.Comment.created_at,
    "updatedAt": models.Comment.updated_at,
}


def get_comments(
    db: Session,
    recipe_id: UUID,
    page: Optional[int] = 1,
    limit: Optional[int] = 10,
    sort_by: Optional[str] = "createdAt",
    sort_order: Optional[str] = "desc",
) -> Tuple[List[models.Comment], int, filters.Pagination]:
    """
    Page through a recipe's comments. Unknown sort fields fall back to createdAt.
    A recipe without comments (or one that no longer exists) yields an empty page.
    """
    pagination = filters.normalize_pagination(page, limit)
    column = COMMENT_SORT_FIELDS.get(sort_by or "createdAt")
    if column is None:
        logger.debug(f"Unknown comment sortBy {sort_by!r}, falling back to createdAt")
        column = models.Comment.created_at
    direction = filters.SORT_ORDERS[filters.normalize_sort_order(sort_order)]

    query = db.query(models.Comment).filter(models.Comment.recipe_id == recipe_id)
    total = query.count()
    if pagination.offset >= total:
        return [], total, pagination
    comments = (
        query.options(joinedload(models.Comment.author))
        .order_by(direction(column), models.Comment.created_at.asc(), models.Comment.id.asc())
        .offset(pagination.offset)
        .limit(pagination.limit)
        .all()
    )
    return comments, total, pagination


def get_recent_comments(db: Session, recipe_id: UUID, limit: int = RECENT_COMMENTS):
    comments, _, _ = get_comments(db, recipe_id, page=1, limit=limit)
    return comments
