"""
FastAPI dependencies for the caller identity.
"""
from typing import Annotated, Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select

from access_control.core.database.engine import Database
from access_control.core.errors import CrossTenantError, NotFoundError
from access_control.features.users.auth import identity_from_token, identity_from_user
from access_control.features.users.models import User
from access_control.features.users.schemas import Identity
from access_control.utils import get_logger


log = get_logger(__name__)

security = HTTPBearer()


async def get_identity(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> Identity:
    """
    Typed identity of the authenticated caller.

    Usage:
        @router.get("/me")
        async def get_me(identity: Identity = Depends(get_identity)):
            return identity
    """
    return identity_from_token(credentials.credentials)


def resolve_org(identity: Identity, requested_org_id: Optional[str]) -> str:
    """
    Tenant a request acts in.

    Defaults to the caller's org. Only super admins may name another one; for
    anyone else a different org is a cross-tenant attempt, never coerced.
    """
    if requested_org_id is None or requested_org_id == identity.org_id:
        return identity.org_id
    if identity.is_super_admin:
        return requested_org_id
    log.warning(
        "SECURITY cross-tenant request denied: user=%s org=%s requested_org=%s",
        identity.user_id, identity.org_id, requested_org_id,
    )
    raise CrossTenantError(
        f"Organization {requested_org_id!r} is outside the caller's tenant",
        org_id=identity.org_id,
        requested_org_id=requested_org_id,
    )


async def load_identity(database: Database, user_id: str, org_id: Optional[str]) -> Identity:
    """
    Identity of a stored user inside ``org_id`` (any tenant when None). Users
    of other tenants are reported as not found.
    """
    async with database.session() as session:
        result = await session.execute(
            select(User).where(User.id == user_id, User.is_deleted.is_(False))
        )
        user = result.scalar_one_or_none()
    if user is None or (org_id is not None and user.org_id != org_id):
        raise NotFoundError("user", user_id)
    return identity_from_user(user)



def get_authorization_header(request: Request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
