"""
Invitation Store

Invitation tokens and the transactional accept step that turns one into an
active role grant.
"""

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crm_auth.constants.auth import CREDENTIAL_PROVIDER
from crm_auth.exceptions import ConflictError, NotFoundError, ValidationError
from crm_auth.models.invitation import InvitationToken
from crm_auth.models.membership import UserTenantRole
from crm_auth.models.tenant import Tenant
from crm_auth.models.user import Credential, User
from crm_auth.stores.base import BaseStore
from crm_auth.stores.credential_store import normalize_email
from crm_auth.stores.membership_store import get_active_grant, insert_active_grant

logger = logging.getLogger(__name__)


class InvitationStore(BaseStore):
    async def create(
        self,
        token_hash: str,
        email: str,
        tenant_id: int,
        role: str,
        invited_by_id: int | None,
        created_at: datetime,
        expires_at: datetime,
    ) -> InvitationToken:
        async def _op(db: AsyncSession) -> InvitationToken:
            invitation = InvitationToken(
                token_hash=token_hash,
                email=normalize_email(email),
                tenant_id=tenant_id,
                role=role,
                invited_by_id=invited_by_id,
                created_at=created_at,
                expires_at=expires_at,
            )
            db.add(invitation)
            await db.flush()
            return invitation

        return await self._run(_op, name="create_invitation", write=True)

    async def get_by_hash(self, token_hash: str) -> InvitationToken | None:
        async def _op(db: AsyncSession) -> InvitationToken | None:
            result = await db.execute(select(InvitationToken).where(InvitationToken.token_hash == token_hash))
            return result.scalars().first()

        return await self._run(_op, name="get_invitation")

    async def accept(
        self,
        token_hash: str,
        now: datetime,
        password_hash: str | None,
        algorithm: str,
        name: str | None = None,
    ) -> UserTenantRole | None:
        """
        Consume an invitation and activate the role it carries.

        Runs as one transaction: the token is claimed with a conditional UPDATE
        (unconsumed and unexpired), the invited user and credential are created
        if the email has no account yet and the invited role is inserted as the
        active grant.

        Returns None when the token was already claimed, expired or unknown.
        Raises NotFoundError when the tenant is no longer active and
        ConflictError when the email already holds an active grant in it; both
        roll the claim back.
        An existing credential is never overwritten; ``password_hash`` is only
        used when the invited email has no credential.
        """

        async def _op(db: AsyncSession) -> UserTenantRole | None:
            claimed = await db.execute(
                update(InvitationToken)
                .where(
                    InvitationToken.token_hash == token_hash,
                    InvitationToken.consumed_at.is_(None),
                    InvitationToken.expires_at > now,
                )
                .values(consumed_at=now)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                return None

            result = await db.execute(select(InvitationToken).where(InvitationToken.token_hash == token_hash))
            invitation = result.scalars().one()

            tenant = await db.get(Tenant, invitation.tenant_id)
            if tenant is None or not tenant.is_active:
                raise NotFoundError("Tenant", invitation.tenant_id)

            result = await db.execute(select(User).where(User.email == invitation.email))
            user = result.scalars().first()
            if user is None:
                user = User(
                    email=invitation.email,
                    name=name or invitation.email.split("@")[0],
                    email_verified=True,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                )
                db.add(user)
                await db.flush()
            else:
                # Existing members change role through change_member_role, which checks rank
                if await get_active_grant(db, user.id, invitation.tenant_id) is not None:
                    raise ConflictError("Membership", "email", invitation.email)
                if not user.is_active:
                    user.is_active = True
                    user.updated_at = now

            result = await db.execute(
                select(Credential.id).where(Credential.user_id == user.id, Credential.provider == CREDENTIAL_PROVIDER)
            )
            if result.scalar() is None:
                if password_hash is None:
                    raise ValidationError("Password is required to create an account", field="password")
                db.add(
                    Credential(
                        user_id=user.id,
                        provider=CREDENTIAL_PROVIDER,
                        password_hash=password_hash,
                        algorithm=algorithm,
                        created_at=now,
                        updated_at=now,
                    )
                )

            grant = await insert_active_grant(
                db, user.id, invitation.tenant_id, invitation.role, invitation.invited_by_id
            )
            logger.info(
                "Invitation %d accepted: user_id=%d tenant_id=%d role=%s",
                invitation.id,
                user.id,
                invitation.tenant_id,
                invitation.role,
            )
            return grant

        return await self._run(
            _op,
            name="accept_invitation",
            write=True,
            conflict=ConflictError("Membership", "email", token_hash),
        )

    async def has_credential_for_email(self, email: str) -> bool:
        async def _op(db: AsyncSession) -> bool:
            result = await db.execute(
                select(Credential.id)
                .join(User, User.id == Credential.user_id)
                .where(User.email == normalize_email(email), Credential.provider == CREDENTIAL_PROVIDER)
            )
            return result.first() is not None

        return await self._run(_op, name="has_credential_for_email")

    async def has_active_grant_for_email(self, email: str, tenant_id: int) -> bool:
        async def _op(db: AsyncSession) -> bool:
            result = await db.execute(
                select(UserTenantRole.id)
                .join(User, User.id == UserTenantRole.user_id)
                .where(
                    User.email == normalize_email(email),
                    UserTenantRole.tenant_id == tenant_id,
                    UserTenantRole.is_active.is_(True),
                )
            )
            return result.first() is not None

        return await self._run(_op, name="has_active_grant_for_email")
