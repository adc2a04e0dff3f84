# schemas.py
# Defines the Pydantic models (schemas) for data validation and serialization.
# Every schema serializes with camelCase field names; input accepts camelCase or snake_case.

from pydantic import BaseModel, EmailStr, ConfigDict
from pydantic.alias_generators import to_camel
from typing import List, Optional, Union
from uuid import UUID
from datetime import datetime


class APIModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# --- User Schemas ---
class UserBase(APIModel):
    name: str
    email: EmailStr


class UserCreate(UserBase):
    password: str
    image: Optional[str] = None


class UserUpdate(APIModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    image: Optional[str] = None


class UserLogin(APIModel):
    email: EmailStr
    password: str


class User(UserBase):
    id: UUID
    image: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AuthorSummary(APIModel):
    id: UUID
    name: str
    email: str


# --- Recipe Schemas ---
class RecipeImage(APIModel):
    url: str
    public_id: str


class RecipeCreate(APIModel):
    title: str
    ingredients: Union[List[str], str]
    steps: Union[List[str], str]
    preparation_time: int
    is_published: bool = True


class RecipeUpdate(APIModel):
    title: Optional[str] = None
    ingredients: Optional[Union[List[str], str]] = None
    steps: Optional[Union[List[str], str]] = None
    preparation_time: Optional[int] = None
    is_published: Optional[bool] = None


class Recipe(APIModel):
    id: UUID
    title: str
    ingredients: List[str]
    steps: List[str]
    preparation_time: int
    image: Optional[RecipeImage] = None
    author_id: UUID
    author: Optional[AuthorSummary] = None
    is_published: bool
    created_at: datetime
    updated_at: datetime


class RecipeWithRating(Recipe):
    average_rating: float = 0
    rating_count: int = 0


# --- Rating Schemas ---
class RatingCreate(APIModel):
    value: float


class Rating(APIModel):
    id: UUID
    value: float
    author_id: UUID
    recipe_id: UUID
    created_at: datetime
    updated_at: datetime


class RatingSummary(APIModel):
    average: float
    count: int
    user_rating: Optional[float] = None


# --- Comment Schemas ---
class CommentCreate(APIModel):
    content: str = ""


class CommentUpdate(CommentCreate):
    pass


class Comment(APIModel):
    id: UUID
    content: str
    author_id: UUID
    author: Optional[AuthorSummary] = None
    recipe_id: UUID
    created_at: datetime
    updated_at: datetime


class RecipeDetail(RecipeWithRating):
    recent_comments: List[Comment] = []


# --- Pagination ---
class Pagination(APIModel):
    page: int
    limit: int
    total: int
    pages: int


class CommentPagination(Pagination):
    has_next: bool
    has_prev: bool


class RecipePage(APIModel):
    data: List[RecipeWithRating]
    pagination: Pagination


class CommentPage(APIModel):
    data: List[Comment]
    pagination: CommentPagination


# --- Response envelopes ---
class Message(APIModel):
    message: str


class RecipeResponse(Message):
    recipe: Recipe


class RatingResponse(Message):
    rating: Rating


class CommentResponse(Message):
    comment: Comment


class UserResponse(Message):
    user: User


class UserDataResponse(Message):
    data: User


class UserListResponse(Message):
    data: List[User]


class AuthResponse(UserResponse):
    token: str


# --- Token Schemas ---
class Token(BaseModel):
    access_token: str
    token_type: str


class TokenData(BaseModel):
    user_id: Optional[str] = None
