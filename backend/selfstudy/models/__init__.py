from selfstudy.models.refresh_token import RefreshToken
from selfstudy.models.user import ADMIN_ROLE, DEFAULT_ROLE, User

__all__ = [
    "ADMIN_ROLE",
    "DEFAULT_ROLE",
    "RefreshToken",
    "User",
]
