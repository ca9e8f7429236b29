"""
Assignment management API routes.

Every write runs through the lifecycle manager; every route acts inside one
tenant resolved from the caller's identity and requires the caller to
administer that tenant.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, Query, Response, status

from access_control.core.database.engine import retry_transient
from access_control.features.access.dependencies import authorize_admin, get_admin_org, get_evaluator
from access_control.features.access.evaluator import AccessEvaluator
from access_control.features.assignments.dependencies import get_lifecycle, get_queries
from access_control.features.assignments.lifecycle import AssignmentLifecycleManager
from access_control.features.assignments.queries import AssignmentQueries
from access_control.features.assignments.schemas import (
    AssignmentCreate,
    AssignmentFilters,
    AssignmentListResponse,
    AssignmentResponse,
    AssignmentTransferRequest,
    AssignmentUpdate,
    BulkAssignmentCreate,
    ContextAssignmentSummary,
    TransferResult,
    UserReassignRequest,
)
from access_control.features.hierarchy.types import ContextType
from access_control.features.users.dependencies import get_identity
from access_control.features.users.schemas import Identity


router = APIRouter(tags=["assignments"])


# ============================================================================
# Writes
# ============================================================================

@router.post("", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    data: AssignmentCreate,
    identity: Annotated[Identity, Depends(get_identity)],
    evaluator: Annotated[AccessEvaluator, Depends(get_evaluator)],
    lifecycle: Annotated[AssignmentLifecycleManager, Depends(get_lifecycle)],
):
    """Grant a role to a user at an organization, location or project."""
    org_id = await authorize_admin(identity, evaluator, data.org_id)
    return await retry_transient(lambda: lifecycle.create_assignment(data, org_id, identity.user_id))


@router.post("/bulk", response_model=List[AssignmentResponse], status_code=status.HTTP_201_CREATED)
async def create_bulk_assignments(
    data: BulkAssignmentCreate,
    identity: Annotated[Identity, Depends(get_identity)],
    evaluator: Annotated[AccessEvaluator, Depends(get_evaluator)],
    lifecycle: Annotated[AssignmentLifecycleManager, Depends(get_lifecycle)],
):
    """Grant the same role at the same context to several users at once."""
    org_id = await authorize_admin(identity, evaluator, data.org_id)
    return await retry_transient(lambda: lifecycle.create_bulk_assignments(data, org_id, identity.user_id))


@router.post("/transfer", response_model=TransferResult)
async def transfer_assignments(
    transfer: AssignmentTransferRequest,
    identity: Annotated[Identity, Depends(get_identity)],
    evaluator: Annotated[AccessEvaluator, Depends(get_evaluator)],
    lifecycle: Annotated[AssignmentLifecycleManager, Depends(get_lifecycle)],
):
    """Move assignments from one context to another of the same type."""
    org_id = await authorize_admin(identity, evaluator, transfer.org_id)
    return await retry_transient(lambda: lifecycle.transfer_assignments(transfer, org_id, identity.user_id))


@router.post("/reassign", response_model=TransferResult)
async def reassign_user(
    reassign: UserReassignRequest,
    identity: Annotated[Identity, Depends(get_identity)],
    evaluator: Annotated[AccessEvaluator, Depends(get_evaluator)],
    lifecycle: Annotated[AssignmentLifecycleManager, Depends(get_lifecycle)],
):
    """Hand a user's assignments over to another user of the same organization."""
    org_id = await authorize_admin(identity, evaluator, reassign.org_id)
    return await retry_transient(lambda: lifecycle.reassign_user(reassign, org_id, identity.user_id))


@router.patch("/{assignment_id}", response_model=AssignmentResponse)
async def update_assignment(
    assignment_id: str,
    patch: AssignmentUpdate,
    identity: Annotated[Identity, Depends(get_identity)],
    org_id: Annotated[str, Depends(get_admin_org)],
    lifecycle: Annotated[AssignmentLifecycleManager, Depends(get_lifecycle)],
):
    """Update role, trade, primary flag or validity window."""
    return await retry_transient(
        lambda: lifecycle.update_assignment(assignment_id, patch, org_id, identity.user_id)
    )


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(
    assignment_id: str,
    identity: Annotated[Identity, Depends(get_identity)],
    org_id: Annotated[str, Depends(get_admin_org)],
    lifecycle: Annotated[AssignmentLifecycleManager, Depends(get_lifecycle)],
):
    """Soft-delete an assignment. Deleting it again is a no-op."""
    await retry_transient(lambda: lifecycle.delete_assignment(assignment_id, org_id, identity.user_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Reads
# ============================================================================

@router.get("", response_model=AssignmentListResponse)
async def list_assignments(
    filters: Annotated[AssignmentFilters, Query()],
    org_id: Annotated[str, Depends(get_admin_org)],
    queries: Annotated[AssignmentQueries, Depends(get_queries)],
):
    """List assignments of the organization with filters and pagination."""
    return await retry_transient(lambda: queries.list_assignments(filters, org_id))


@router.get("/contexts/{context_type}/{context_id}", response_model=ContextAssignmentSummary)
async def get_context_assignments(
    context_type: ContextType,
    context_id: str,
    org_id: Annotated[str, Depends(get_admin_org)],
    queries: Annotated[AssignmentQueries, Depends(get_queries)],
):
    """Effective assignments held directly at one context."""
    return await retry_transient(lambda: queries.get_context_assignments(context_type, context_id, org_id))


@router.get("/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment(
    assignment_id: str,
    org_id: Annotated[str, Depends(get_admin_org)],
    queries: Annotated[AssignmentQueries, Depends(get_queries)],
):
    """Get one assignment of the organization by ID."""
    return await retry_transient(lambda: queries.get_assignment(assignment_id, org_id))
