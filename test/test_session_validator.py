"""
Tests for SessionValidator
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from crm_auth.exceptions import StoreTimeoutError
from crm_auth.models.tenant import TenantStatus
from crm_auth.permissions_config.permissions import Permission
from crm_auth.services.session_validator import SessionFailure, SessionValidator
from crm_auth.utils.security import generate_token

from conftest import JAN_EMAIL, JAN_PASSWORD, PLATFORM_EMAIL, PLATFORM_PASSWORD


@pytest.fixture
async def jan_login(auth_service, jan):
    return await auth_service.login_user(JAN_EMAIL, JAN_PASSWORD, "demo")


class TestValidSessions:
    async def test_context_is_complete(self, session_validator, jan_login, jan, demo_tenant):
        result = await session_validator.validate_session(jan_login.session_token)

        assert result.valid
        assert result.reason is None
        context = result.context
        assert context.user.id == jan.id
        assert context.tenant.id == demo_tenant.id
        assert context.tenant_id == demo_tenant.id
        assert context.user_role == "agent"
        assert context.session_id == jan_login.session.id
        assert Permission("contacts", "create") in context.permissions
        assert not context.is_platform_admin

    async def test_role_change_is_seen_on_next_validation(
        self, session_validator, membership_store, jan_login, jan, demo_tenant
    ):
        await membership_store.grant_role(jan.id, demo_tenant.id, "viewer")
        result = await session_validator.validate_session(jan_login.session_token)
        assert result.context.user_role == "viewer"
        assert Permission("contacts", "create") not in result.context.permissions


class TestInvalidSessions:
    @pytest.mark.parametrize("token", [None, "", "garbage", "Z" * 64])
    async def test_malformed(self, session_validator, token):
        result = await session_validator.validate_session(token)
        assert not result.valid
        assert result.reason is SessionFailure.INVALID
        assert result.context is None

    async def test_unknown_token(self, session_validator, demo_tenant):
        result = await session_validator.validate_session(generate_token())
        assert result.reason is SessionFailure.INVALID

    async def test_expired(self, session_validator, expire_sessions, jan_login, jan):
        await expire_sessions(jan.id)
        result = await session_validator.validate_session(jan_login.session_token)
        assert not result.valid
        assert result.reason is SessionFailure.EXPIRED

    async def test_revoked_role(self, session_validator, membership_store, jan_login, jan, demo_tenant):
        await membership_store.deactivate_role(jan.id, demo_tenant.id)
        result = await session_validator.validate_session(jan_login.session_token)
        assert result.reason is SessionFailure.INVALID

    async def test_inactive_user(self, session_validator, credential_store, jan_login, jan):
        await credential_store.set_user_active(jan.id, False)
        result = await session_validator.validate_session(jan_login.session_token)
        assert result.reason is SessionFailure.INVALID

    async def test_suspended_tenant(self, session_validator, tenant_store, jan_login, demo_tenant):
        await tenant_store.set_status(demo_tenant.id, TenantStatus.suspended)
        result = await session_validator.validate_session(jan_login.session_token)
        assert result.reason is SessionFailure.INVALID

        await tenant_store.set_status(demo_tenant.id, TenantStatus.active)
        assert (await session_validator.validate_session(jan_login.session_token)).valid

    async def test_expiry_is_checked_before_user_state(
        self, session_validator, credential_store, expire_sessions, jan_login, jan
    ):
        await credential_store.set_user_active(jan.id, False)
        await expire_sessions(jan.id)
        result = await session_validator.validate_session(jan_login.session_token)
        assert result.reason is SessionFailure.EXPIRED


class TestTimeouts:
    async def test_store_timeout_is_invalid(self, credential_store, tenant_store, permission_service):
        sessions = AsyncMock()
        sessions.get_by_session_token.side_effect = StoreTimeoutError(operation="get_session")
        validator = SessionValidator(sessions, credential_store, tenant_store, permission_service, timeout=1.0)

        result = await validator.validate_session(generate_token())

        assert not result.valid
        assert result.reason is SessionFailure.INVALID

    async def test_slow_store_is_cut_off(self, credential_store, tenant_store, permission_service):
        async def _slow(*args, **kwargs):
            await asyncio.sleep(5)

        sessions = AsyncMock()
        sessions.get_by_session_token.side_effect = _slow
        validator = SessionValidator(sessions, credential_store, tenant_store, permission_service, timeout=0.05)

        result = await validator.validate_session(generate_token())

        assert result.reason is SessionFailure.INVALID


class TestPlatformSessions:
    async def test_platform_session_without_grant_is_invalid(
        self, auth_service, session_validator, membership_store, platform_admin
    ):
        login = await auth_service.login_platform_admin(PLATFORM_EMAIL, PLATFORM_PASSWORD)
        await membership_store.deactivate_role(platform_admin.id, None)

        result = await session_validator.validate_session(login.session_token)
        assert result.reason is SessionFailure.INVALID
