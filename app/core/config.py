from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal, Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "Recipe Sharing API"
    ROOT_PATH: str = ""
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    SECRET_KEY: str = "your-super-secret-key"  # Default for dev, override in prod
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_COOKIE: str = "access_token"

    # Database
    DATABASE_URL: str = "sqlite:///./db/recipes.db"

    # Logging
    LOGGING_CONFIG: str = "logging.ini"
    LOG_SLOW_REQUEST_MS: float = 500
    LOG_SAMPLE_RATE: float = 0.05

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000"
    ]

    # Rate limiting (auth endpoints)
    RATE_LIMIT_ENABLED: bool = True
    AUTH_RATE_LIMIT: str = "10/minute"

    # Product policies
    # "integer": whole stars 1-5, "half": 0.5-5 rounded to the nearest half star
    RATING_SCALE: Literal["integer", "half"] = "integer"
    ALLOW_MULTIPLE_COMMENTS: bool = True

    # Pagination
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # Image hosting (Cloudinary)
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None
    CLOUDINARY_FOLDER: str = "recipes"
    MAX_IMAGE_BYTES: int = 10 * 1024 * 1024

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env")

settings = Settings()
