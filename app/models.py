# models.py
# Defines the SQLAlchemy ORM models for the database tables.

import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Float, ForeignKey, Integer, JSON, String, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import Uuid
from app.db.session import Base


def utcnow():
    # Microsecond precision keeps creation order stable for recipes created in the same second
    return datetime.now(timezone.utc)


class User(Base):
    """
    User model for the 'users' table.
    """
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    image = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    recipes = relationship("Recipe", back_populates="author", cascade="all, delete-orphan")
    ratings = relationship("Rating", back_populates="author", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="author", cascade="all, delete-orphan")

    def __str__(self):
        return f"{self.id}: {self.email}"


class Recipe(Base):
    """
    Recipe model for the 'recipes' table.
    Average rating and rating count are derived from the ratings table, never stored.
    """
    __tablename__ = "recipes"
    __table_args__ = (
        CheckConstraint("length(title) >= 3 AND length(title) <= 100", name="ck_recipes_title_length"),
        CheckConstraint(
            "preparation_time >= 1 AND preparation_time <= 1440", name="ck_recipes_preparation_time"
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)

    title = Column(String(100), index=True, nullable=False)
    ingredients = Column(JSON, nullable=False, default=list)
    steps = Column(JSON, nullable=False, default=list)
    preparation_time = Column(Integer, index=True, nullable=False)

    image_url = Column(Text, nullable=True)
    image_public_id = Column(Text, nullable=True)

    author_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    is_published = Column(Boolean, default=True, index=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    author = relationship("User", back_populates="recipes")

    ratings = relationship("Rating", back_populates="recipe", cascade="all, delete-orphan")

    comments = relationship("Comment", back_populates="recipe", cascade="all, delete-orphan")

    @property
    def image(self):
        if not self.image_url:
            return None
        return {"url": self.image_url, "public_id": self.image_public_id or ""}

    def __str__(self):
        return f"{self.id}: {self.title}"


class Rating(Base):
    """
    One rating per (author, recipe); the unique constraint settles concurrent inserts.
    """
    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint("author_id", "recipe_id", name="uq_ratings_author_recipe"),
        CheckConstraint("value >= 0.5 AND value <= 5", name="ck_ratings_value"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    value = Column(Float, nullable=False)
    author_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    recipe_id = Column(
        Uuid(as_uuid=True), ForeignKey("recipes.id", ondelete="CASCADE"), index=True, nullable=False
    )

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    author = relationship("User", back_populates="ratings")
    recipe = relationship("Recipe", back_populates="ratings")


class Comment(Base):
    """
    A comment on a recipe.
    """
    __tablename__ = "comments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    content = Column(String(500), nullable=False)
    author_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    recipe_id = Column(
        Uuid(as_uuid=True), ForeignKey("recipes.id", ondelete="CASCADE"), index=True, nullable=False
    )

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    author = relationship("User", back_populates="comments")
    recipe = relationship("Recipe", back_populates="comments")
