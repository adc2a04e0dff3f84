# api/auth.py
# Handles user authentication, registration, and token generation.

import logging
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from datetime import timedelta, datetime, timezone
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt

# Import local modules
from app import crud
from app import schemas
from app import models
from app.db.session import get_db
from app.core.config import settings
from app.core.exceptions import AuthenticationError
from app.core.rate_limit import limiter

# OAuth2 scheme definition; the cookie set at login is accepted as well
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/token", auto_error=False
)

# Create an API router
router = APIRouter()

# Get a logger instance
logger = logging.getLogger(__name__)


# --- Utility Functions for JWT ---

def create_access_token(data: dict, expires_delta: timedelta | None = None):
    """
    Creates a new JWT access token.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=15)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def issue_token(user: models.User) -> str:
    return create_access_token(
        data={"sub": str(user.id)},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.ACCESS_TOKEN_COOKIE,
        value=token,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="strict",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


# --- Dependency for Getting Current User ---

def _token_from_request(request: Request, bearer_token: Optional[str]) -> Optional[str]:
    return bearer_token or request.cookies.get(settings.ACCESS_TOKEN_COOKIE)


def _resolve_user(db: Session, token: str) -> models.User:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        subject: str = payload.get("sub")
        if subject is None:
            logger.error("Token has no subject")
            raise AuthenticationError("Invalid token")
        token_data = schemas.TokenData(user_id=subject)
        user_id = UUID(token_data.user_id)
    except (JWTError, ValueError):
        logger.error("Invalid Auth Token")
        raise AuthenticationError("Invalid token")

    user = crud.get_user(db, user_id=user_id)
    if user is None:
        logger.error("Could not find user")
        raise AuthenticationError("Invalid token")
    return user


async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
):
    """
    Decodes the JWT (bearer header or cookie) to get the current user.
    This function is a dependency that can be used to protect endpoints.
    """
    token = _token_from_request(request, token)
    if not token:
        raise AuthenticationError("Unauthorized")
    user = _resolve_user(db, token)
    request.state.user = user
    logger.debug(f"Found user: {user.email}")
    return user


async def get_optional_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
):
    """
    Like get_current_user, but anonymous callers (no token at all) get None.
    """
    token = _token_from_request(request, token)
    if not token:
        return None
    user = _resolve_user(db, token)
    request.state.user = user
    return user


# --- Authentication Endpoints ---


@router.post("/signup", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def signup(
    request: Request,
    response: Response,
    user_in: schemas.UserCreate,
    db: Session = Depends(get_db),
):
    """
    Register a new user and log them in.
    """
    user = crud.create_user(db, user_in)
    token = issue_token(user)
    set_auth_cookie(response, token)
    return {"message": "User created successfully", "user": user, "token": token}


@router.post("/login", response_model=schemas.AuthResponse)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def login(
    request: Request,
    response: Response,
    credentials: schemas.UserLogin,
    db: Session = Depends(get_db),
):
    """
    Log in with email and password; the token is returned and set as a cookie.
    """
    user = crud.authenticate(db, credentials.email, credentials.password)
    if not user:
        logger.warning("Incorrect email or password")
        raise AuthenticationError("Invalid credentials")
    token = issue_token(user)
    set_auth_cookie(response, token)
    return {"message": "Login successful", "user": user, "token": token}


@router.post("/token", response_model=schemas.Token)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    """
    OAuth2 password flow, used by the interactive docs.
    """
    user = crud.authenticate(db, form_data.username, form_data.password)
    if not user:
        logger.warning("Incorrect password")
        raise AuthenticationError("Incorrect email or password")
    return {"access_token": issue_token(user), "token_type": "bearer"}


@router.post("/logout", response_model=schemas.Message)
def logout(response: Response):
    """
    Clear the authentication cookie.
    """
    response.delete_cookie(
        key=settings.ACCESS_TOKEN_COOKIE,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="strict",
    )
    return {"message": "Logout successful"}


@router.get("/me", response_model=schemas.UserResponse)
def read_current_user(current_user: models.User = Depends(get_current_user)):
    """
    Get the profile of the authenticated user.
    """
    return {"message": "User profile fetched successfully", "user": current_user}
