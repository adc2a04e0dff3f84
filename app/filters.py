# app/filters.py
# Listing engine: filtering, rating aggregation, sorting and pagination for recipes.

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import Numeric, asc, cast, desc, func, or_, select
from sqlalchemy.orm import Query, Session, selectinload

from app import models
from app.core.config import settings

logger = logging.getLogger(__name__)

# Inclusive [min, max] minutes; None means unbounded
PREPARATION_TIME_BUCKETS = {
    "0-30": (0, 30),
    "30-60": (30, 60),
    "60-120": (60, 120),
    "120+": (120, None),
}

SORT_ORDERS = {"asc": asc, "desc": desc}


@dataclass
class RecipeFilters:
    search: Optional[str] = None
    author_id: Optional[UUID] = None
    preparation_time: Optional[str] = None
    min_rating: Optional[float] = None


@dataclass
class Pagination:
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class RecipePage:
    items: List[models.Recipe] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def pages(self) -> int:
        return page_count(self.total, self.limit)


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if total else 0


def normalize_pagination(page: Optional[int], limit: Optional[int]) -> Pagination:
    """
    Coerce page/limit to usable values. Non-positive values fall back to the defaults,
    limit is capped at MAX_PAGE_SIZE. Never raises.
    """
    if page is None or page < 1:
        if page is not None:
            logger.debug(f"Invalid page {page!r}, using 1")
        page = 1
    if limit is None or limit < 1:
        if limit is not None:
            logger.debug(f"Invalid limit {limit!r}, using {settings.DEFAULT_PAGE_SIZE}")
        limit = settings.DEFAULT_PAGE_SIZE
    if limit > settings.MAX_PAGE_SIZE:
        logger.debug(f"Limit {limit} capped at {settings.MAX_PAGE_SIZE}")
        limit = settings.MAX_PAGE_SIZE
    return Pagination(page=page, limit=limit)


def normalize_sort_order(sort_order: Optional[str]) -> str:
    order = (sort_order or "desc").lower()
    if order not in SORT_ORDERS:
        logger.debug(f"Unknown sortOrder {sort_order!r}, falling back to desc")
        return "desc"
    return order


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# --- Rating aggregation ---

def rating_stats_subquery(db: Session, recipe_ids=None):
    """
    One grouped query over ratings: recipe_id, average (rounded to 1 decimal), count.
    Used by both the listing engine and the single-recipe average so they always agree.
    """
    average = func.round(cast(func.avg(models.Rating.value), Numeric(10, 4)), 1)
    query = db.query(
        models.Rating.recipe_id.label("recipe_id"),
        average.label("average"),
        func.count(models.Rating.id).label("count"),
    )
    if recipe_ids is not None:
        query = query.filter(models.Rating.recipe_id.in_(recipe_ids))
    return query.group_by(models.Rating.recipe_id).subquery()


# --- Filters ---

def ingredient_matches(query: Query, pattern: str):
    """
    EXISTS over the elements of the ingredients JSON array, so the pattern is matched
    against each ingredient and never against the JSON punctuation around it.
    """
    if query.session.get_bind().dialect.name == "postgresql":
        elements = func.json_array_elements_text(models.Recipe.ingredients)
    else:
        elements = func.json_each(models.Recipe.ingredients)
    ingredient = elements.table_valued("value").alias("ingredient")
    return (
        select(ingredient.c.value)
        .select_from(ingredient)
        .where(ingredient.c.value.ilike(pattern, escape="\\"))
        .exists()
    )


def apply_filters(query: Query, filters: RecipeFilters) -> Query:
    # Unpublished recipes never appear in public listings
    query = query.filter(models.Recipe.is_published.is_(True))

    if filters.author_id:
        query = query.filter(models.Recipe.author_id == filters.author_id)

    if filters.preparation_time:
        bucket = PREPARATION_TIME_BUCKETS.get(filters.preparation_time)
        if bucket is None:
            logger.debug(f"Unknown preparationTime bucket {filters.preparation_time!r}, ignoring")
        else:
            low, high = bucket
            query = query.filter(models.Recipe.preparation_time >= low)
            if high is not None:
                query = query.filter(models.Recipe.preparation_time <= high)

    search = (filters.search or "").strip()
    if search:
        pattern = f"%{escape_like(search)}%"
        query = query.filter(or_(
            models.Recipe.title.ilike(pattern, escape="\\"),
            ingredient_matches(query, pattern),
            models.Recipe.author.has(or_(
                models.User.name.ilike(pattern, escape="\\"),
                models.User.email.ilike(pattern, escape="\\"),
            )),
        ))

    return query


def sort_column(sort_by: Optional[str], average_column):
    columns = {
        "createdAt": models.Recipe.created_at,
        "updatedAt": models.Recipe.updated_at,
        "title": models.Recipe.title,
        "preparationTime": models.Recipe.preparation_time,
        "rating": average_column,
        "averageRating": average_column,
    }
    column = columns.get(sort_by or "createdAt")
    if column is None:
        logger.debug(f"Unknown sortBy {sort_by!r}, falling back to createdAt")
        column = models.Recipe.created_at
    return column


def apply_sorting(query: Query, sort_by: Optional[str], sort_order: Optional[str], average_column) -> Query:
    direction = SORT_ORDERS[normalize_sort_order(sort_order)]
    # Stable tie-break: insertion order, then id
    return query.order_by(
        direction(sort_column(sort_by, average_column)),
        models.Recipe.created_at.asc(),
        models.Recipe.id.asc(),
    )


def list_recipes(
    db: Session,
    filters: Optional[RecipeFilters] = None,
    page: Optional[int] = 1,
    limit: Optional[int] = 10,
    sort_by: Optional[str] = "createdAt",
    sort_order: Optional[str] = "desc",
) -> RecipePage:
    """
    Filter, aggregate, sort and paginate published recipes.

    The minimum rating is applied in SQL over the whole candidate set, before
    LIMIT/OFFSET, so no page is short except the last one. Each returned recipe
    carries ``average_rating`` and ``rating_count`` attributes.
    """
    filters = filters or RecipeFilters()
    pagination = normalize_pagination(page, limit)

    stats = rating_stats_subquery(db)
    average_column = func.coalesce(stats.c.average, 0)
    count_column = func.coalesce(stats.c.count, 0)

    query = (
        db.query(models.Recipe, average_column.label("average_rating"), count_column.label("rating_count"))
        .outerjoin(stats, stats.c.recipe_id == models.Recipe.id)
    )
    query = apply_filters(query, filters)

    if filters.min_rating is not None:
        query = query.filter(average_column >= filters.min_rating)

    total = query.order_by(None).count()

    # A page past the end is empty; its offset may not even fit in a SQL integer
    rows: List[Tuple[models.Recipe, float, int]] = []
    if pagination.offset < total:
        rows = (
            apply_sorting(query, sort_by, sort_order, average_column)
            .options(selectinload(models.Recipe.author))
            .offset(pagination.offset)
            .limit(pagination.limit)
            .all()
        )

    items = []
    for recipe, average, count in rows:
        recipe.average_rating = float(average or 0)
        recipe.rating_count = int(count or 0)
        items.append(recipe)

    logger.debug(
        f"Listed {len(items)} of {total} recipes (page={pagination.page}, limit={pagination.limit}, "
        f"sortBy={sort_by}, sortOrder={sort_order}, filters={filters})"
    )
    return RecipePage(items=items, total=total, page=pagination.page, limit=pagination.limit)
