"""Login / logout / current-user endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from shiftboard.config import settings
from shiftboard.middleware.auth import SESSION_COOKIE, get_auth_service, get_current_user, get_request_token
from shiftboard.schemas.auth import LoginRequest, LoginResponse, UserResponse
from shiftboard.schemas.common import MessageResponse
from shiftboard.services.auth import AccountLocked, AuthService, AuthenticatedUser, InvalidCredentials

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(
    req: LoginRequest,
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
):
    """Exchange credentials for a session token (also set as an HttpOnly cookie)."""
    ip = request.client.host if request.client else None
    try:
        token, user = await auth.login(req.email, req.password, ip=ip, user_agent=request.headers.get("user-agent"))
    except AccountLocked as e:
        raise HTTPException(status_code=423, detail=str(e))
    except InvalidCredentials as e:
        raise HTTPException(status_code=401, detail=str(e))

    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=settings.session_ttl_days * 86400,
        httponly=True,
        secure=not settings.debug,
        samesite="lax",
    )
    return LoginResponse(token=token, user=UserResponse(**user.to_dict()))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    token: str | None = Depends(get_request_token),
    auth: AuthService = Depends(get_auth_service),
):
    if token:
        await auth.logout(token)
    response.delete_cookie(SESSION_COOKIE)
    return MessageResponse(message="Logged out")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_everywhere(
    response: Response,
    user: AuthenticatedUser = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    await auth.logout_everywhere(user)
    response.delete_cookie(SESSION_COOKIE)
    logger.info("sessions_revoked", user_id=user.id)
    return MessageResponse(message="All sessions revoked")


@router.get("/me", response_model=UserResponse)
async def me(user: AuthenticatedUser = Depends(get_current_user)):
    return UserResponse(**user.to_dict())
