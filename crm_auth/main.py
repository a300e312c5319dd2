"""
Application factory.

Every store and component is built here from one engine and one session
factory and hung off ``app.state``; nothing is a module-level singleton, so
tests can build as many isolated apps as they need.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crm_auth.config import Settings
from crm_auth.config import settings as default_settings
from crm_auth.database import create_engine, create_session_factory, init_models
from crm_auth.exception_handlers import register_exception_handlers
from crm_auth.middleware.logging import StructuredLoggingMiddleware
from crm_auth.middleware.rate_limit import configure_rate_limiting
from crm_auth.routes import auth, members, tenants
from crm_auth.scheduler import create_scheduler
from crm_auth.services.auth_service import AuthService
from crm_auth.services.membership_service import MembershipService
from crm_auth.services.permission_service import PermissionService
from crm_auth.services.session_validator import SessionValidator
from crm_auth.services.tenant_service import TenantService
from crm_auth.services.token_refresh import TokenRefreshManager
from crm_auth.stores import CredentialStore, InvitationStore, MembershipStore, SessionStore, TenantStore
from crm_auth.utils.security import build_password_context

logger = logging.getLogger(__name__)


def build_components(app: FastAPI, settings: Settings) -> None:
    """Wire stores and services onto app.state."""
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    timeout = settings.store_timeout_seconds

    credential_store = CredentialStore(session_factory, timeout)
    session_store = SessionStore(session_factory, timeout)
    tenant_store = TenantStore(session_factory, timeout)
    membership_store = MembershipStore(session_factory, timeout)
    invitation_store = InvitationStore(session_factory, timeout)

    permission_service = PermissionService(membership_store)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.credential_store = credential_store
    app.state.session_store = session_store
    app.state.tenant_store = tenant_store
    app.state.membership_store = membership_store
    app.state.invitation_store = invitation_store

    app.state.permission_service = permission_service
    app.state.session_validator = SessionValidator(
        sessions=session_store,
        credentials=credential_store,
        tenants=tenant_store,
        permissions=permission_service,
        timeout=timeout,
    )
    app.state.auth_service = AuthService(
        credentials=credential_store,
        sessions=session_store,
        tenants=tenant_store,
        memberships=membership_store,
        invitations=invitation_store,
        password_context=build_password_context(settings.bcrypt_rounds),
        settings=settings,
    )
    app.state.token_refresh_manager = TokenRefreshManager(session_store, settings)
    app.state.membership_service = MembershipService(membership_store, invitation_store, settings)
    app.state.tenant_service = TenantService(tenant_store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("Starting %s v%s (%s)", settings.app_name, settings.app_version, settings.environment)

    if settings.environment != "production":
        # Production schemas are managed by Alembic
        await init_models(app.state.engine)

    scheduler = None
    if settings.session_sweep_enabled:
        scheduler = create_scheduler(app.state.session_store, settings.session_sweep_interval_minutes)
        scheduler.start()

    yield

    if scheduler is not None:
        scheduler.shutdown(wait=False)
    await app.state.engine.dispose()
    logger.info("Shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI application."""
    settings = settings or default_settings

    app = FastAPI(
        title=settings.app_name,
        description="Multi-tenant authentication, session and authorization core",
        debug=settings.debug,
        version=settings.app_version,
        lifespan=lifespan,
    )
    build_components(app, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(StructuredLoggingMiddleware)

    configure_rate_limiting(app, enabled=settings.rate_limit_enabled)
    register_exception_handlers(app)

    app.include_router(auth.router, prefix="/api/auth")
    app.include_router(tenants.router, prefix="/api/v1/tenants")
    app.include_router(members.router, prefix="/api/v1")

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "healthy", "version": settings.app_version}

    return app
