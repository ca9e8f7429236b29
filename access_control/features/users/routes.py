"""
User feature routes: a user's assignments and contexts.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends

from access_control.core.database.engine import retry_transient
from access_control.features.access.dependencies import authorize_user_read, get_evaluator
from access_control.features.access.evaluator import AccessEvaluator
from access_control.features.assignments.dependencies import get_queries
from access_control.features.assignments.queries import AssignmentQueries
from access_control.features.assignments.schemas import UserAssignmentSummary, UserContext
from access_control.features.hierarchy.types import ContextType
from access_control.features.users.dependencies import get_identity
from access_control.features.users.schemas import Identity


router = APIRouter(tags=["users"])


@router.get("/{user_id}/assignments", response_model=UserAssignmentSummary)
async def get_user_assignments(
    user_id: str,
    identity: Annotated[Identity, Depends(get_identity)],
    evaluator: Annotated[AccessEvaluator, Depends(get_evaluator)],
    queries: Annotated[AssignmentQueries, Depends(get_queries)],
    org_id: Optional[str] = None,
):
    """Active assignments of a user with per-type counts."""
    scope = await authorize_user_read(identity, evaluator, user_id, org_id)
    return await retry_transient(lambda: queries.get_user_summary(user_id, scope))


@router.get("/{user_id}/contexts", response_model=List[UserContext])
async def get_user_contexts(
    user_id: str,
    identity: Annotated[Identity, Depends(get_identity)],
    evaluator: Annotated[AccessEvaluator, Depends(get_evaluator)],
    queries: Annotated[AssignmentQueries, Depends(get_queries)],
    context_type: Optional[ContextType] = None,
    org_id: Optional[str] = None,
):
    """Contexts the user is directly and effectively assigned to."""
    scope = await authorize_user_read(identity, evaluator, user_id, org_id)
    return await retry_transient(lambda: queries.get_user_contexts(user_id, scope, context_type))
