from movie_api.models.refresh_token import RefreshToken
from movie_api.models.user import User, UserRole

__all__ = ["RefreshToken", "User", "UserRole"]
