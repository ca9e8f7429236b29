"""
Read-side assignment operations for collaborators and the admin API.
"""
from collections.abc import Callable
from datetime import date
from math import ceil
from typing import List, Optional

from access_control.core import config
from access_control.core.database.engine import Database
from access_control.features.assignments.models import Assignment
from access_control.features.assignments.schemas import (
    AssignmentFilters,
    AssignmentListResponse,
    AssignmentResponse,
    ContextAssignmentSummary,
    UserAssignmentSummary,
    UserContext,
)
from access_control.features.assignments.store import AssignmentStore
from access_control.features.hierarchy.types import ContextType
from access_control.utils import utc_today


class AssignmentQueries:
    """Tenant-scoped reads; one short read session per call."""

    def __init__(
        self,
        database: Database,
        clock: Callable[[], date] = utc_today,
        default_page_size: int = config.DEFAULT_PAGE_SIZE,
        max_page_size: int = config.MAX_PAGE_SIZE,
    ) -> None:
        self.database = database
        self.clock = clock
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    async def get_assignment(self, assignment_id: str, org_id: str) -> Assignment:
        async with self.database.session() as session:
            return await AssignmentStore(session).get_assignment(assignment_id, org_id)

    async def list_assignments(self, filters: AssignmentFilters, org_id: str) -> AssignmentListResponse:
        page_size = min(filters.page_size or self.default_page_size, self.max_page_size)
        async with self.database.session() as session:
            rows, total = await AssignmentStore(session).list_assignments(
                filters, org_id, page_size=page_size, on=self.clock(),
            )
        return AssignmentListResponse(
            items=[AssignmentResponse.model_validate(row) for row in rows],
            total=total,
            page=filters.page,
            page_size=page_size,
            pages=ceil(total / page_size) if total else 0,
        )

    async def get_context_assignments(
        self,
        context_type: ContextType,
        context_id: str,
        org_id: str,
    ) -> ContextAssignmentSummary:
        async with self.database.session() as session:
            rows = await AssignmentStore(session).get_context_assignments(
                context_type, context_id, org_id, on=self.clock(),
            )
        return ContextAssignmentSummary(
            context_type=context_type,
            context_id=context_id,
            org_id=org_id,
            assignments=[AssignmentResponse.model_validate(row) for row in rows],
        )

    async def get_user_assignments(self, user_id: str, org_id: str) -> List[Assignment]:
        async with self.database.session() as session:
            return await AssignmentStore(session).get_user_assignments(user_id, org_id, on=self.clock())

    async def get_user_summary(self, user_id: str, org_id: str) -> UserAssignmentSummary:
        """
        Status-active assignments of a user with per-type counts.

        Counts cover every row; the listed assignments are the newest page.
        """
        filters = AssignmentFilters(user_id=user_id, page_size=self.max_page_size)
        today = self.clock()
        async with self.database.session() as session:
            store = AssignmentStore(session)
            rows, total = await store.list_assignments(
                filters, org_id, page_size=self.max_page_size, on=today,
            )
            by_type, effective = await store.count_user_assignments(user_id, org_id, on=today)
        return UserAssignmentSummary(
            user_id=user_id,
            org_id=org_id,
            total_assignments=total,
            effective_assignments=effective,
            assignments_by_type=by_type,
            assignments=[AssignmentResponse.model_validate(row) for row in rows],
        )

    async def get_user_contexts(
        self,
        user_id: str,
        org_id: str,
        context_type: Optional[ContextType] = None,
    ) -> List[UserContext]:
        """
        Contexts a user is directly assigned to, one entry per effective assignment.
        """
        rows = await self.get_user_assignments(user_id, org_id)
        return [
            UserContext.model_validate(row)
            for row in rows
            if (context_type is None or row.context_type == context_type)
        ]
