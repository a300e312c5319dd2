"""
Pytest configuration and fixtures for the CRM auth core tests

Every test gets its own SQLite database file under tmp_path, so tests never
share state. Store and service fixtures are wired the same way create_app()
wires them; route tests build an app against the same database file.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import update

from crm_auth.config import Settings
from crm_auth.database import create_engine, create_session_factory, init_models
from crm_auth.main import create_app
from crm_auth.models.user_session import UserSession
from crm_auth.services.auth_service import AuthService
from crm_auth.services.membership_service import MembershipService
from crm_auth.services.permission_service import PermissionService
from crm_auth.services.session_validator import SessionValidator
from crm_auth.services.tenant_service import TenantService
from crm_auth.services.token_refresh import TokenRefreshManager
from crm_auth.stores import CredentialStore, InvitationStore, MembershipStore, SessionStore, TenantStore
from crm_auth.utils.security import build_password_context

JAN_EMAIL = "jan@example.com"
JAN_PASSWORD = "Str0ngPass!"
ADMIN_EMAIL = "owner@example.com"
ADMIN_PASSWORD = "OwnerPass1!"
PLATFORM_EMAIL = "root@example.com"
PLATFORM_PASSWORD = "PlatformPass1!"


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        environment="testing",
        bcrypt_rounds=4,
        rate_limit_enabled=False,
        session_sweep_enabled=False,
        store_timeout_seconds=5.0,
    )


# ── Persistence ────────────────────────────────────────────────────────────────


@pytest.fixture
async def engine(test_settings):
    engine = create_engine(test_settings)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def credential_store(session_factory, test_settings):
    return CredentialStore(session_factory, test_settings.store_timeout_seconds)


@pytest.fixture
def session_store(session_factory, test_settings):
    return SessionStore(session_factory, test_settings.store_timeout_seconds)


@pytest.fixture
def tenant_store(session_factory, test_settings):
    return TenantStore(session_factory, test_settings.store_timeout_seconds)


@pytest.fixture
def membership_store(session_factory, test_settings):
    return MembershipStore(session_factory, test_settings.store_timeout_seconds)


@pytest.fixture
def invitation_store(session_factory, test_settings):
    return InvitationStore(session_factory, test_settings.store_timeout_seconds)


# ── Services ───────────────────────────────────────────────────────────────────


@pytest.fixture
def permission_service(membership_store):
    return PermissionService(membership_store)


@pytest.fixture
def auth_service(credential_store, session_store, tenant_store, membership_store, invitation_store, test_settings):
    return AuthService(
        credentials=credential_store,
        sessions=session_store,
        tenants=tenant_store,
        memberships=membership_store,
        invitations=invitation_store,
        password_context=build_password_context(test_settings.bcrypt_rounds),
        settings=test_settings,
    )


@pytest.fixture
def session_validator(session_store, credential_store, tenant_store, permission_service, test_settings):
    return SessionValidator(
        sessions=session_store,
        credentials=credential_store,
        tenants=tenant_store,
        permissions=permission_service,
        timeout=test_settings.store_timeout_seconds,
    )


@pytest.fixture
def refresh_manager(session_store, test_settings):
    return TokenRefreshManager(session_store, test_settings)


@pytest.fixture
def membership_service(membership_store, invitation_store, test_settings):
    return MembershipService(membership_store, invitation_store, test_settings)


@pytest.fixture
def tenant_service(tenant_store):
    return TenantService(tenant_store)


# ── Seed data ──────────────────────────────────────────────────────────────────


@pytest.fixture
async def demo_tenant(tenant_store):
    return await tenant_store.create_tenant(name="Demo Makelaars", slug="demo")


@pytest.fixture
async def acme_tenant(tenant_store):
    return await tenant_store.create_tenant(name="Acme Vastgoed", slug="acme")


@pytest.fixture
async def jan(auth_service, demo_tenant):
    """jan@example.com, agent in the demo tenant."""
    user, _grant = await auth_service.register_user(
        email=JAN_EMAIL, password=JAN_PASSWORD, name="Jan Jansen", tenant_slug="demo", role="agent"
    )
    return user


@pytest.fixture
async def demo_owner(auth_service, demo_tenant):
    user, _grant = await auth_service.register_user(
        email=ADMIN_EMAIL, password=ADMIN_PASSWORD, name="Olga Owner", tenant_slug="demo", role="tenant_owner"
    )
    return user


@pytest.fixture
async def platform_admin(auth_service):
    user, _grant = await auth_service.create_platform_admin(
        email=PLATFORM_EMAIL, password=PLATFORM_PASSWORD, name="Platform Root"
    )
    return user


@pytest.fixture
def expire_sessions(session_factory):
    """Return a coroutine function that moves session or refresh expiry into the past."""

    async def _expire(user_id: int, *, session: bool = True, refresh: bool = False):
        values = {}
        if session:
            values["expires_at"] = UserSession.created_at
        if refresh:
            values["refresh_expires_at"] = UserSession.created_at
        async with session_factory() as db:
            await db.execute(update(UserSession).where(UserSession.user_id == user_id).values(**values))
            await db.commit()

    return _expire


# ── HTTP ───────────────────────────────────────────────────────────────────────


@pytest.fixture
def client(test_settings, engine):
    app = create_app(test_settings)
    with TestClient(app) as test_client:
        yield test_client
