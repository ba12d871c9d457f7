from .dto import UserCreateIn, UserListOut, UserOut, UserUpdateIn
from .service import UserService

__all__ = ["UserCreateIn", "UserListOut", "UserOut", "UserService", "UserUpdateIn"]
