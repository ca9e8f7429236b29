"""
Authorization dependencies for the administrative API.
"""
from typing import Annotated, Optional
from fastapi import Depends, HTTPException, status

from access_control.core.database.engine import Database, get_database, retry_transient
from access_control.features.access.evaluator import AccessEvaluator
from access_control.features.users.dependencies import get_identity, resolve_org
from access_control.features.users.schemas import Identity
from access_control.utils import get_logger


log = get_logger(__name__)


def get_evaluator(database: Annotated[Database, Depends(get_database)]) -> AccessEvaluator:
    return AccessEvaluator(database)


async def authorize_admin(
    identity: Identity,
    evaluator: AccessEvaluator,
    requested_org_id: Optional[str] = None,
) -> str:
    """
    Resolve the tenant of an administrative request and require the caller to
    administer it.

    Returns:
        The organization id the request acts in

    Raises:
        CrossTenantError: Non-super-admin naming another organization
        HTTPException: 403 if the caller holds no organization-level assignment
    """
    org_id = resolve_org(identity, requested_org_id)
    if not await retry_transient(lambda: evaluator.is_org_admin(identity, org_id)):
        log.info("User %s is not an administrator of org %s", identity.user_id, org_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organization administrator access required",
        )
    return org_id


async def authorize_user_read(
    identity: Identity,
    evaluator: AccessEvaluator,
    user_id: str,
    requested_org_id: Optional[str] = None,
) -> str:
    """Users may read their own assignments; anything else needs an administrator."""
    org_id = resolve_org(identity, requested_org_id)
    if user_id == identity.user_id and org_id == identity.org_id:
        return org_id
    return await authorize_admin(identity, evaluator, org_id)


async def get_admin_org(
    identity: Annotated[Identity, Depends(get_identity)],
    evaluator: Annotated[AccessEvaluator, Depends(get_evaluator)],
    org_id: Optional[str] = None,
) -> str:
    """
    Dependency form of ``authorize_admin`` taking ``org_id`` from the query.

    Usage:
        @router.get("/assignments")
        async def list_assignments(org_id: str = Depends(get_admin_org)):
            ...
    """
    return await authorize_admin(identity, evaluator, org_id)
