"""
Access evaluation routes.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends

from access_control.core.database.engine import Database, get_database, retry_transient
from access_control.features.access.dependencies import authorize_admin, get_evaluator
from access_control.features.access.evaluator import AccessEvaluator, parse_resource_type
from access_control.features.access.schemas import AccessDecision, AccessibleResourcesResponse
from access_control.features.users.dependencies import get_identity, load_identity
from access_control.features.users.schemas import Identity


router = APIRouter(tags=["access"])


async def _subject(
    identity: Identity,
    evaluator: AccessEvaluator,
    database: Database,
    user_id: Optional[str],
    org_id: Optional[str],
) -> Identity:
    """The caller, or another user of a tenant the caller administers."""
    if user_id is None or user_id == identity.user_id:
        return identity
    scope = await authorize_admin(identity, evaluator, org_id)
    if identity.is_super_admin and org_id is None:
        scope = None
    return await retry_transient(lambda: load_identity(database, user_id, scope))


@router.get("/check", response_model=AccessDecision)
async def check_access(
    resource_type: str,
    resource_id: str,
    identity: Annotated[Identity, Depends(get_identity)],
    evaluator: Annotated[AccessEvaluator, Depends(get_evaluator)],
    database: Annotated[Database, Depends(get_database)],
    user_id: Optional[str] = None,
    org_id: Optional[str] = None,
):
    """
    Decide whether a user may act on a resource.

    Defaults to the caller. Checking someone else requires administering their
    organization.
    """
    subject = await _subject(identity, evaluator, database, user_id, org_id)
    return await retry_transient(lambda: evaluator.explain_access(subject, resource_type, resource_id))


@router.get("/resources/{resource_type}", response_model=AccessibleResourcesResponse)
async def accessible_resources(
    resource_type: str,
    identity: Annotated[Identity, Depends(get_identity)],
    evaluator: Annotated[AccessEvaluator, Depends(get_evaluator)],
    database: Annotated[Database, Depends(get_database)],
    user_id: Optional[str] = None,
    org_id: Optional[str] = None,
):
    """List every resource id of one type the user can act on."""
    wanted = parse_resource_type(resource_type)
    subject = await _subject(identity, evaluator, database, user_id, org_id)
    ids = await retry_transient(lambda: evaluator.accessible_resources(subject, wanted))
    return AccessibleResourcesResponse(
        user_id=subject.user_id,
        resource_type=wanted,
        resource_ids=sorted(ids),
    )
