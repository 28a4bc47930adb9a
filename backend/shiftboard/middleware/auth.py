"""Authentication dependencies - bearer token or session cookie."""

from fastapi import Cookie, Depends, HTTPException, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from shiftboard.services.auth import AuthService, AuthenticatedUser
from shiftboard.services.store import Store, get_store

security = HTTPBearer(auto_error=False)

SESSION_COOKIE = "shiftboard_session"


def get_auth_service(store: Store = Depends(get_store)) -> AuthService:
    return AuthService(store)


def get_request_token(
    credentials: HTTPAuthorizationCredentials = Security(security),
    shiftboard_session: str | None = Cookie(default=None),
) -> str | None:
    if credentials:
        return credentials.credentials
    return shiftboard_session


async def get_current_user(
    token: str | None = Depends(get_request_token),
    auth: AuthService = Depends(get_auth_service),
) -> AuthenticatedUser:
    """Resolve the caller. 401 when the token is missing, unknown or expired."""
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")
    user = await auth.validate_session(token)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return user


async def require_staff(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
    if not user.is_staff:
        raise HTTPException(status_code=403, detail="Staff access required")
    return user


async def require_admin(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
