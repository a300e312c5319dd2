"""
Tests for AuthService: registration, login, logout, invitations and
password change, against a real SQLite database.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select, update

from crm_auth.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ErrorCode,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
    WeakPasswordError,
)
from crm_auth.models.invitation import InvitationToken
from crm_auth.models.membership import UserTenantRole
from crm_auth.models.tenant import TenantStatus
from crm_auth.models.user import Credential
from crm_auth.services.session_validator import SessionFailure
from crm_auth.utils.security import generate_token, token_digest, utcnow

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, JAN_EMAIL, JAN_PASSWORD, PLATFORM_EMAIL, PLATFORM_PASSWORD


async def _invite(invitation_store, tenant_id, email, role="agent", expires_in=timedelta(days=7)):
    raw = generate_token()
    now = utcnow()
    await invitation_store.create(
        token_hash=token_digest(raw),
        email=email,
        tenant_id=tenant_id,
        role=role,
        invited_by_id=None,
        created_at=now,
        expires_at=now + expires_in,
    )
    return raw


class TestRegisterUser:
    async def test_register_creates_user_credential_and_role(self, auth_service, credential_store, demo_tenant):
        user, grant = await auth_service.register_user(
            email="Jan@Example.com", password=JAN_PASSWORD, name="Jan", tenant_slug="demo", role="agent"
        )
        assert user.email == "jan@example.com"
        assert grant.role == "agent"
        assert grant.tenant_id == demo_tenant.id
        assert grant.is_active

        credential = await credential_store.get_credential(user.id)
        assert credential.algorithm == "bcrypt"
        assert credential.password_hash != JAN_PASSWORD

    async def test_register_does_not_open_a_session(self, auth_service, session_factory, jan):
        from crm_auth.models.user_session import UserSession

        async with session_factory() as db:
            result = await db.execute(select(UserSession).where(UserSession.user_id == jan.id))
            assert result.scalars().first() is None

    async def test_weak_password(self, auth_service, demo_tenant):
        with pytest.raises(WeakPasswordError) as exc_info:
            await auth_service.register_user("a@example.com", "weak", "A", "demo", "agent")
        assert exc_info.value.error_code is ErrorCode.WEAK_PASSWORD

    async def test_duplicate_email_is_case_insensitive(self, auth_service, jan):
        with pytest.raises(ConflictError):
            await auth_service.register_user("JAN@example.com", JAN_PASSWORD, "Jan 2", "demo", "viewer")

    async def test_unknown_tenant(self, auth_service, demo_tenant):
        with pytest.raises(NotFoundError):
            await auth_service.register_user("a@example.com", JAN_PASSWORD, "A", "nowhere", "agent")

    async def test_suspended_tenant_is_not_found(self, auth_service, tenant_store, demo_tenant):
        await tenant_store.set_status(demo_tenant.id, TenantStatus.suspended)
        with pytest.raises(NotFoundError):
            await auth_service.register_user("a@example.com", JAN_PASSWORD, "A", "demo", "agent")

    async def test_platform_admin_cannot_be_requested(self, auth_service, demo_tenant):
        with pytest.raises(ValidationError):
            await auth_service.register_user("a@example.com", JAN_PASSWORD, "A", "demo", "platform_admin")

    async def test_unknown_role(self, auth_service, demo_tenant):
        with pytest.raises(ValidationError) as exc_info:
            await auth_service.register_user("a@example.com", JAN_PASSWORD, "A", "demo", "overlord")
        assert exc_info.value.details["field"] == "role"


class TestLoginUser:
    async def test_login_then_validate(self, auth_service, session_validator, jan, demo_tenant):
        result = await auth_service.login_user(JAN_EMAIL, JAN_PASSWORD, "demo")
        assert result.user.id == jan.id
        assert result.tenant.id == demo_tenant.id
        assert result.user_role.role == "agent"
        assert result.session_token != result.refresh_token

        validation = await session_validator.validate_session(result.session_token)
        assert validation.valid
        assert validation.context.user_role == "agent"

    async def test_session_lifetimes(self, auth_service, jan):
        result = await auth_service.login_user(JAN_EMAIL, JAN_PASSWORD, "demo")
        session = result.session
        assert session.expires_at - session.created_at == timedelta(hours=24)
        assert session.refresh_expires_at - session.created_at == timedelta(days=7)

    async def test_tokens_stored_as_digests(self, auth_service, jan):
        result = await auth_service.login_user(JAN_EMAIL, JAN_PASSWORD, "demo")
        assert result.session.session_token_hash == token_digest(result.session_token)
        assert result.session.refresh_token_hash == token_digest(result.refresh_token)

    async def test_wrong_password_and_unknown_user_are_indistinguishable(self, auth_service, jan):
        with pytest.raises(InvalidCredentialsError) as wrong_password:
            await auth_service.login_user(JAN_EMAIL, "Wr0ngPass!", "demo")
        with pytest.raises(InvalidCredentialsError) as unknown_user:
            await auth_service.login_user("nobody@example.com", JAN_PASSWORD, "demo")

        assert wrong_password.value.message == unknown_user.value.message == "Invalid credentials"
        assert wrong_password.value.error_code is unknown_user.value.error_code
        assert wrong_password.value.details == unknown_user.value.details

    async def test_deactivated_user_gets_the_same_failure(self, auth_service, credential_store, jan):
        await credential_store.set_user_active(jan.id, False)
        with pytest.raises(InvalidCredentialsError):
            await auth_service.login_user(JAN_EMAIL, JAN_PASSWORD, "demo")

    async def test_unknown_tenant(self, auth_service, jan):
        with pytest.raises(NotFoundError):
            await auth_service.login_user(JAN_EMAIL, JAN_PASSWORD, "nowhere")

    async def test_no_role_in_tenant(self, auth_service, jan, acme_tenant):
        with pytest.raises(AuthorizationError) as exc_info:
            await auth_service.login_user(JAN_EMAIL, JAN_PASSWORD, "acme")
        assert exc_info.value.error_code is ErrorCode.AUTH_TENANT_ACCESS_DENIED


class TestPlatformAdminLogin:
    async def test_platform_session_has_no_tenant(self, auth_service, session_validator, platform_admin):
        result = await auth_service.login_platform_admin(PLATFORM_EMAIL, PLATFORM_PASSWORD)
        assert result.tenant is None
        assert result.session.tenant_id is None

        validation = await session_validator.validate_session(result.session_token)
        assert validation.valid
        assert validation.context.is_platform_admin
        assert validation.context.tenant is None

    async def test_tenant_user_is_refused(self, auth_service, jan):
        with pytest.raises(AuthorizationError) as exc_info:
            await auth_service.login_platform_admin(JAN_EMAIL, JAN_PASSWORD)
        assert exc_info.value.message == "Platform admin access required"

    async def test_wrong_password(self, auth_service, platform_admin):
        with pytest.raises(InvalidCredentialsError):
            await auth_service.login_platform_admin(PLATFORM_EMAIL, "Wr0ngPass!")


class TestLogout:
    async def test_logout_twice_never_errors(self, auth_service, session_validator, jan):
        result = await auth_service.login_user(JAN_EMAIL, JAN_PASSWORD, "demo")

        assert await auth_service.logout_user(result.session_token) is True
        assert await auth_service.logout_user(result.session_token) is False

        validation = await session_validator.validate_session(result.session_token)
        assert not validation.valid
        assert validation.reason is SessionFailure.INVALID

    async def test_logout_with_garbage(self, auth_service):
        assert await auth_service.logout_user(None) is False
        assert await auth_service.logout_user("not-a-token") is False

    async def test_logout_all_sessions_keeps_the_excepted_one(self, auth_service, session_validator, jan):
        first = await auth_service.login_user(JAN_EMAIL, JAN_PASSWORD, "demo")
        second = await auth_service.login_user(JAN_EMAIL, JAN_PASSWORD, "demo")

        removed = await auth_service.logout_all_sessions(jan.id, except_token=second.session_token)

        assert removed == 1
        assert not (await session_validator.validate_session(first.session_token)).valid
        assert (await session_validator.validate_session(second.session_token)).valid


class TestChangePassword:
    async def test_scenario(self, auth_service, jan):
        await auth_service.login_user(JAN_EMAIL, JAN_PASSWORD, "demo")
        with pytest.raises(AuthenticationError):
            await auth_service.login_user(JAN_EMAIL, "Wr0ngPass!", "demo")

        await auth_service.change_password(jan.id, JAN_PASSWORD, "NewPass1!")

        with pytest.raises(InvalidCredentialsError):
            await auth_service.login_user(JAN_EMAIL, JAN_PASSWORD, "demo")
        result = await auth_service.login_user(JAN_EMAIL, "NewPass1!", "demo")
        assert result.user_role.role == "agent"

    async def test_wrong_current_password(self, auth_service, jan):
        with pytest.raises(AuthenticationError) as exc_info:
            await auth_service.change_password(jan.id, "NotMyPass1!", "NewPass1!")
        assert exc_info.value.error_code is ErrorCode.AUTH_CURRENT_PASSWORD_INCORRECT

    async def test_weak_new_password(self, auth_service, jan):
        with pytest.raises(WeakPasswordError) as exc_info:
            await auth_service.change_password(jan.id, JAN_PASSWORD, "weak")
        assert exc_info.value.details["field"] == "new_password"

    async def test_other_sessions_are_revoked(self, auth_service, session_validator, jan):
        current = await auth_service.login_user(JAN_EMAIL, JAN_PASSWORD, "demo")
        other = await auth_service.login_user(JAN_EMAIL, JAN_PASSWORD, "demo")

        await auth_service.change_password(
            jan.id, JAN_PASSWORD, "NewPass1!", current_session_token=current.session_token
        )

        assert (await session_validator.validate_session(current.session_token)).valid
        assert not (await session_validator.validate_session(other.session_token)).valid

    async def test_sessions_survive_when_revocation_disabled(self, auth_service, session_validator, jan):
        auth_service.settings = auth_service.settings.model_copy(
            update={"revoke_other_sessions_on_password_change": False}
        )
        other = await auth_service.login_user(JAN_EMAIL, JAN_PASSWORD, "demo")
        await auth_service.change_password(jan.id, JAN_PASSWORD, "NewPass1!")
        assert (await session_validator.validate_session(other.session_token)).valid


class TestAcceptInvitation:
    async def test_new_user_gets_account_and_role(self, auth_service, invitation_store, demo_tenant):
        raw = await _invite(invitation_store, demo_tenant.id, "piet@example.com", role="assistant")

        grant = await auth_service.accept_invitation(raw, password="PietPass1!", name="Piet")

        assert grant.role == "assistant"
        assert grant.tenant_id == demo_tenant.id
        result = await auth_service.login_user("piet@example.com", "PietPass1!", "demo")
        assert result.user.name == "Piet"

    async def test_token_is_consumed(self, auth_service, invitation_store, session_factory, demo_tenant):
        raw = await _invite(invitation_store, demo_tenant.id, "piet@example.com")
        await auth_service.accept_invitation(raw, password="PietPass1!")

        invitation = await invitation_store.get_by_hash(token_digest(raw))
        assert invitation.consumed_at is not None

    async def test_consumed_invitation_is_invalid(self, auth_service, invitation_store, demo_tenant):
        raw = await _invite(invitation_store, demo_tenant.id, "piet@example.com")
        await auth_service.accept_invitation(raw, password="PietPass1!")

        with pytest.raises(ValidationError) as exc_info:
            await auth_service.accept_invitation(raw, password="PietPass1!")
        assert "invalid" in exc_info.value.message.lower()
        assert exc_info.value.error_code is ErrorCode.INVITATION_INVALID

    async def test_expired_invitation(self, auth_service, invitation_store, demo_tenant):
        raw = await _invite(invitation_store, demo_tenant.id, "piet@example.com", expires_in=timedelta(seconds=-1))

        with pytest.raises(ValidationError) as exc_info:
            await auth_service.accept_invitation(raw, password="PietPass1!")
        assert "expired" in exc_info.value.message.lower()
        assert exc_info.value.error_code is ErrorCode.INVITATION_EXPIRED

    async def test_unknown_token(self, auth_service):
        with pytest.raises(ValidationError) as exc_info:
            await auth_service.accept_invitation(generate_token(), password="PietPass1!")
        assert exc_info.value.error_code is ErrorCode.INVITATION_INVALID

    async def test_weak_password(self, auth_service, invitation_store, demo_tenant):
        raw = await _invite(invitation_store, demo_tenant.id, "piet@example.com")
        with pytest.raises(WeakPasswordError):
            await auth_service.accept_invitation(raw, password="weak")
        # The failed attempt did not burn the invitation
        invitation = await invitation_store.get_by_hash(token_digest(raw))
        assert invitation.consumed_at is None

    async def test_password_required_for_new_account(self, auth_service, invitation_store, demo_tenant):
        raw = await _invite(invitation_store, demo_tenant.id, "piet@example.com")
        with pytest.raises(ValidationError):
            await auth_service.accept_invitation(raw)

    async def test_existing_user_keeps_credential(
        self, auth_service, invitation_store, session_factory, jan, acme_tenant
    ):
        async with session_factory() as db:
            before = (await db.execute(select(Credential.password_hash).where(Credential.user_id == jan.id))).scalar()

        raw = await _invite(invitation_store, acme_tenant.id, JAN_EMAIL, role="viewer")
        grant = await auth_service.accept_invitation(raw, password="Ignored1!Pass")

        assert grant.user_id == jan.id
        async with session_factory() as db:
            after = (await db.execute(select(Credential.password_hash).where(Credential.user_id == jan.id))).scalar()
        assert after == before

        result = await auth_service.login_user(JAN_EMAIL, JAN_PASSWORD, "acme")
        assert result.user_role.role == "viewer"

    async def test_active_member_cannot_be_regranted(
        self, auth_service, invitation_store, membership_store, demo_owner, demo_tenant
    ):
        raw = await _invite(invitation_store, demo_tenant.id, ADMIN_EMAIL, role="viewer")

        with pytest.raises(ConflictError):
            await auth_service.accept_invitation(raw)

        grant = await membership_store.get_active_role(demo_owner.id, demo_tenant.id)
        assert grant.role == "tenant_owner"
        # The refused acceptance did not burn the invitation
        invitation = await invitation_store.get_by_hash(token_digest(raw))
        assert invitation.consumed_at is None

    async def test_rejoining_after_deactivation_keeps_history(
        self, auth_service, invitation_store, membership_store, session_factory, jan, demo_tenant
    ):
        await membership_store.deactivate_role(jan.id, demo_tenant.id)
        raw = await _invite(invitation_store, demo_tenant.id, JAN_EMAIL, role="viewer")
        await auth_service.accept_invitation(raw)

        async with session_factory() as db:
            rows = (
                await db.execute(
                    select(UserTenantRole).where(
                        UserTenantRole.user_id == jan.id, UserTenantRole.tenant_id == demo_tenant.id
                    )
                )
            ).scalars().all()
        active = [r for r in rows if r.is_active]
        assert len(rows) == 2
        assert len(active) == 1
        assert active[0].role == "viewer"

    async def test_suspended_tenant_refuses_acceptance(self, auth_service, invitation_store, tenant_store, demo_tenant):
        raw = await _invite(invitation_store, demo_tenant.id, "piet@example.com")
        await tenant_store.set_status(demo_tenant.id, TenantStatus.suspended)

        with pytest.raises(NotFoundError):
            await auth_service.accept_invitation(raw, password="PietPass1!")

        assert not await invitation_store.has_credential_for_email("piet@example.com")
        invitation = await invitation_store.get_by_hash(token_digest(raw))
        assert invitation.consumed_at is None

    async def test_missing_password_inside_accept_is_a_validation_error(self, invitation_store, demo_tenant):
        raw = await _invite(invitation_store, demo_tenant.id, "piet@example.com")

        with pytest.raises(ValidationError) as exc_info:
            await invitation_store.accept(token_digest(raw), now=utcnow(), password_hash=None, algorithm="bcrypt")
        assert exc_info.value.details["field"] == "password"

    async def test_concurrent_acceptance_claims_once(self, auth_service, invitation_store, session_factory, demo_tenant):
        raw = await _invite(invitation_store, demo_tenant.id, "piet@example.com")
        # Simulate a concurrent acceptance that claimed the token after our read
        async with session_factory() as db:
            await db.execute(
                update(InvitationToken)
                .where(InvitationToken.token_hash == token_digest(raw))
                .values(consumed_at=utcnow())
            )
            await db.commit()

        grant = await invitation_store.accept(
            token_digest(raw), now=utcnow(), password_hash="x", algorithm="bcrypt"
        )
        assert grant is None


class TestCreatePlatformAdmin:
    async def test_grant_is_platform_wide(self, auth_service, membership_store, platform_admin):
        grant = await membership_store.get_active_role(platform_admin.id, None)
        assert grant.role == "platform_admin"
        assert grant.tenant_id is None

    async def test_owner_is_not_platform_admin(self, auth_service, membership_store, demo_owner):
        assert await membership_store.get_active_role(demo_owner.id, None) is None
        result = await auth_service.login_user(ADMIN_EMAIL, ADMIN_PASSWORD, "demo")
        assert result.user_role.role == "tenant_owner"
