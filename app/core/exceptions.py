# core/exceptions.py
# Error taxonomy shared by the repositories, the rating aggregator and the
# listing engine. Status codes are assigned only at the HTTP boundary (app/main.py).


class RecipeAPIError(Exception):
    """
    Base class for every error the core raises on purpose.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RecipeAPIError):
    """Bad input shape or range (title length, preparation time, rating value...)."""


class NotFoundError(RecipeAPIError):
    """A referenced user, recipe, comment or rating does not exist."""


class AuthorizationError(RecipeAPIError):
    """The caller is authenticated but does not own the resource."""


class ConflictError(RecipeAPIError):
    """Duplicate email, duplicate rating, or duplicate comment when forbidden."""


class AuthenticationError(RecipeAPIError):
    """Missing or invalid caller identity."""


class ImageHostError(RecipeAPIError):
    """The image hosting service failed or is not configured."""
