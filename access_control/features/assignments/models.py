"""
Assignment and audit models.

An assignment grants one role to one user at one context (organization,
location or project) inside one tenant. Rows are soft-deleted, never removed
and never resurrected.
"""
import enum
from datetime import date, datetime
from typing import Any, Dict

from sqlalchemy import (
    String,
    ForeignKey,
    JSON,
    Date,
    DateTime,
    Boolean,
    Index,
    CheckConstraint,
    Enum as SQLEnum,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from access_control.core.database.base import Base, TimestampMixin, generate_ulid
from access_control.features.hierarchy.types import ContextType


class AssignmentStatus(str, enum.Enum):
    """Lifecycle tag. DELETED is terminal."""
    ACTIVE = "active"
    DELETED = "deleted"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


_ACTIVE = text("status = 'active'")
_ACTIVE_PRIMARY = text("is_primary AND status = 'active'")


class Assignment(Base, TimestampMixin):
    """
    A (user, role, context) grant with a validity window and a primary flag.

    ``is_primary`` marks the user's main role at a context for display and
    reporting. It never takes part in access decisions.
    """
    __tablename__ = "user_assignments"
    __table_args__ = (
        CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR start_date <= end_date",
            name="ck_user_assignments_date_order",
        ),
        # At most one active row per (user, role, context)
        Index(
            "uq_user_assignments_active_grant",
            "user_id", "role_id", "context_type", "context_id",
            unique=True,
            sqlite_where=_ACTIVE,
            postgresql_where=_ACTIVE,
        ),
        # At most one active primary per (user, context)
        Index(
            "uq_user_assignments_active_primary",
            "user_id", "context_type", "context_id",
            unique=True,
            sqlite_where=_ACTIVE_PRIMARY,
            postgresql_where=_ACTIVE_PRIMARY,
        ),
        Index("ix_user_assignments_context", "context_type", "context_id"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    role_id: Mapped[str] = mapped_column(String(26), ForeignKey("roles.id"), nullable=False, index=True)
    org_id: Mapped[str] = mapped_column(String(26), ForeignKey("organizations.id"), nullable=False, index=True)

    context_type: Mapped[ContextType] = mapped_column(
        SQLEnum(ContextType, name="context_type", values_callable=_enum_values),
        nullable=False
    )
    context_id: Mapped[str] = mapped_column(String(26), nullable=False)

    trade_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Inclusive validity window; None means unbounded on that side
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[AssignmentStatus] = mapped_column(
        SQLEnum(AssignmentStatus, name="assignment_status", values_callable=_enum_values),
        default=AssignmentStatus.ACTIVE,
        nullable=False,
        index=True
    )

    created_by: Mapped[str] = mapped_column(String(26), nullable=False)
    updated_by: Mapped[str] = mapped_column(String(26), nullable=False)
    deleted_by: Mapped[str | None] = mapped_column(String(26), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def is_effective_on(self, day: date) -> bool:
        """Active status and ``day`` inside the inclusive window."""
        if self.status != AssignmentStatus.ACTIVE:
            return False
        if self.start_date is not None and day < self.start_date:
            return False
        if self.end_date is not None and day > self.end_date:
            return False
        return True

    def __repr__(self) -> str:
        return (
            f"<Assignment(id={self.id}, user_id={self.user_id}, role_id={self.role_id}, "
            f"context={self.context_type.value}:{self.context_id}, status={self.status.value})>"
        )


class AuditLog(Base, TimestampMixin):
    """
    Audit log for assignment changes and denied cross-tenant attempts.

    Tracks who did what, when, and in which tenant.
    """
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Actor
    user_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)

    # Action details
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)

    org_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action}, resource={self.resource_type})>"
