"""
Authentication Routes

POST /api/auth/register              → register a user into a tenant
POST /api/auth/login                 → tenant login, sets session + refresh cookies
POST /api/auth/platform-admin-login  → platform-wide login
POST /api/auth/logout                → drop the current session (always 200)
POST /api/auth/refresh               → rotate the token pair
GET  /api/auth/session               → describe the current session
POST /api/auth/accept-invitation     → consume an invitation token
POST /api/auth/change-password       → replace the caller's password
"""

import logging

from fastapi import APIRouter, Depends, Request, Response, status

from crm_auth.config import Settings
from crm_auth.constants.auth import (
    GENERIC_AUTH_FAILURE,
    REFRESH_COOKIE_NAME,
    REFRESH_COOKIE_PATH,
    SESSION_COOKIE_NAME,
    SESSION_COOKIE_PATH,
)
from crm_auth.exceptions import AuthenticationError
from crm_auth.middleware.auth import extract_session_token
from crm_auth.middleware.logging import get_client_ip
from crm_auth.middleware.rate_limit import auth_rate_limit, limiter
from crm_auth.permissions_config.permission_dependencies import get_auth_context
from crm_auth.schemas.auth import (
    AcceptInvitationRequest,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MembershipResponse,
    MessageResponse,
    PlatformAdminLoginRequest,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
    SessionResponse,
    summarize_tenant,
    summarize_user,
)
from crm_auth.services.auth_service import AuthService, LoginResult
from crm_auth.services.session_validator import AuthContext
from crm_auth.services.token_refresh import TokenRefreshManager

router = APIRouter(tags=["Auth"])
logger = logging.getLogger(__name__)


# ── Dependencies ───────────────────────────────────────────────────────────────


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_refresh_manager(request: Request) -> TokenRefreshManager:
    return request.app.state.token_refresh_manager


# ── Cookie helpers ─────────────────────────────────────────────────────────────


def set_auth_cookies(response: Response, settings: Settings, session_token: str, refresh_token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_token,
        max_age=settings.session_token_ttl_hours * 60 * 60,
        path=SESSION_COOKIE_PATH,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    response.set_cookie(
        key=REFRESH_COOKIE_NAME,
        value=refresh_token,
        max_age=settings.refresh_token_ttl_days * 24 * 60 * 60,
        path=REFRESH_COOKIE_PATH,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        SESSION_COOKIE_NAME, path=SESSION_COOKIE_PATH, httponly=True, secure=settings.cookie_secure, samesite="lax"
    )
    response.delete_cookie(
        REFRESH_COOKIE_NAME, path=REFRESH_COOKIE_PATH, httponly=True, secure=settings.cookie_secure, samesite="lax"
    )


def _login_response(result: LoginResult) -> LoginResponse:
    return LoginResponse(
        user=summarize_user(result.user),
        role=result.user_role.role,
        tenant=summarize_tenant(result.tenant),
        session_token=result.session_token,
        expires_at=result.session.expires_at,
    )


# ── Routes ─────────────────────────────────────────────────────────────────────


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(auth_rate_limit)
async def register(
    request: Request,
    response: Response,
    payload: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    """Create a user in a tenant. No session is opened."""
    user, grant = await auth_service.register_user(
        email=payload.email,
        password=payload.password,
        name=payload.name,
        tenant_slug=payload.tenant_slug,
        role=payload.role,
    )
    return RegisterResponse(user=summarize_user(user), role=grant.role, tenant_id=grant.tenant_id)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(auth_rate_limit)
async def login(
    request: Request,
    response: Response,
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    result = await auth_service.login_user(
        email=payload.email,
        password=payload.password,
        tenant_slug=payload.tenant_slug,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )
    set_auth_cookies(response, request.app.state.settings, result.session_token, result.refresh_token)
    return _login_response(result)


@router.post("/platform-admin-login", response_model=LoginResponse)
@limiter.limit(auth_rate_limit)
async def platform_admin_login(
    request: Request,
    response: Response,
    payload: PlatformAdminLoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    result = await auth_service.login_platform_admin(
        email=payload.email,
        password=payload.password,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )
    set_auth_cookies(response, request.app.state.settings, result.session_token, result.refresh_token)
    return _login_response(result)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Always succeeds; an unknown or missing session is already logged out."""
    await auth_service.logout_user(extract_session_token(request))
    clear_auth_cookies(response, request.app.state.settings)
    return MessageResponse(message="Logged out successfully")


@router.post("/refresh", response_model=RefreshResponse)
@limiter.limit(auth_rate_limit)
async def refresh(
    request: Request,
    response: Response,
    payload: RefreshRequest | None = None,
    refresh_manager: TokenRefreshManager = Depends(get_refresh_manager),
) -> RefreshResponse:
    refresh_token = request.cookies.get(REFRESH_COOKIE_NAME) or (payload.refresh_token if payload else None)
    result = await refresh_manager.refresh_session(refresh_token)
    if not result.success:
        logger.info("Refresh failed: %s", result.failure.value)
        raise AuthenticationError(GENERIC_AUTH_FAILURE)

    set_auth_cookies(response, request.app.state.settings, result.session_token, result.refresh_token)
    return RefreshResponse(session_token=result.session_token, expires_at=result.expires_at)


@router.get("/session", response_model=SessionResponse)
async def get_session(context: AuthContext = Depends(get_auth_context)) -> SessionResponse:
    return SessionResponse.from_context(context)


@router.post("/accept-invitation", response_model=MembershipResponse)
@limiter.limit(auth_rate_limit)
async def accept_invitation(
    request: Request,
    response: Response,
    payload: AcceptInvitationRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MembershipResponse:
    grant = await auth_service.accept_invitation(payload.token, password=payload.password, name=payload.name)
    return MembershipResponse.model_validate(grant)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    request: Request,
    payload: ChangePasswordRequest,
    context: AuthContext = Depends(get_auth_context),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth_service.change_password(
        user_id=context.user.id,
        current_password=payload.current_password,
        new_password=payload.new_password,
        current_session_token=extract_session_token(request),
    )
    return MessageResponse(message="Password changed successfully")
