from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.dependencies import get_auth_service
from core.errors import AuthError, PermissionDeniedError
from models.user import User
from services.auth_service import AuthService

security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """The caller as currently stored; the role is never taken from the token."""
    if credentials is None:
        raise AuthError("Access denied. No token provided.")
    return auth_service.authenticate(credentials.credentials)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service),
) -> Optional[User]:
    if credentials is None:
        return None
    return auth_service.authenticate(credentials.credentials)


def require_roles(*roles: str):
    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise PermissionDeniedError()
        return user
    return checker


require_admin = require_roles("admin")


def ensure_self_or_admin(user: User, user_id: str, message: str = "Not authorized") -> None:
    if user.role != "admin" and user.user_id != user_id:
        raise PermissionDeniedError(message)
