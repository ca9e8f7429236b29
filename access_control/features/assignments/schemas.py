"""
Pydantic schemas for assignment management.

Request and response models for assignments, transfers, listings and summaries.
"""
from datetime import date, datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from access_control.features.assignments.models import AssignmentStatus
from access_control.features.hierarchy.types import ContextType


def _check_window(start: Optional[date], end: Optional[date]) -> None:
    if start is not None and end is not None and start > end:
        raise ValueError("start_date must be on or before end_date")


def _blank_to_none(v: Optional[str]) -> Optional[str]:
    if v is not None and not v.strip():
        return None
    return v


# ============================================================================
# Create / Update
# ============================================================================

class AssignmentBase(BaseModel):
    """Fields shared by single and bulk creation."""
    role_id: str = Field(..., min_length=1, max_length=26, description="Role ID")
    context_type: ContextType = Field(..., description="organization, location or project")
    context_id: str = Field(..., min_length=1, max_length=26, description="ID of the entity at that level")
    trade_type: Optional[str] = Field(None, max_length=100, description="Free-form trade tag")
    is_primary: bool = Field(False, description="Main role of the user at this context")
    start_date: Optional[date] = Field(None, description="First day the grant is effective (inclusive)")
    end_date: Optional[date] = Field(None, description="Last day the grant is effective (inclusive)")

    @field_validator("trade_type")
    @classmethod
    def blank_trade_type_is_none(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)

    @model_validator(mode="after")
    def dates_in_order(self):
        _check_window(self.start_date, self.end_date)
        return self


class AssignmentCreate(AssignmentBase):
    """Schema for creating one assignment."""
    user_id: str = Field(..., min_length=1, max_length=26, description="User receiving the grant")
    org_id: Optional[str] = Field(None, max_length=26, description="Tenant of the grant (defaults to the caller's org)")


class BulkAssignmentCreate(AssignmentBase):
    """Schema for granting the same role at the same context to several users."""
    user_ids: List[str] = Field(..., min_length=1, description="Users receiving the grant")
    org_id: Optional[str] = Field(None, max_length=26)

    @field_validator("user_ids")
    @classmethod
    def unique_users(cls, v: List[str]) -> List[str]:
        if len(set(v)) != len(v):
            raise ValueError("user_ids must not contain duplicates")
        return v


class AssignmentUpdate(BaseModel):
    """Schema for patching an assignment. Only fields that are set are applied."""
    role_id: Optional[str] = Field(None, min_length=1, max_length=26)
    trade_type: Optional[str] = Field(None, max_length=100)
    is_primary: Optional[bool] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("trade_type")
    @classmethod
    def blank_trade_type_is_none(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)

    @model_validator(mode="after")
    def dates_in_order(self):
        _check_window(self.start_date, self.end_date)
        return self


# ============================================================================
# Transfers
# ============================================================================

class ContextRef(BaseModel):
    context_type: ContextType
    context_id: str = Field(..., min_length=1, max_length=26)


class AssignmentTransferFilter(BaseModel):
    """Optional narrowing of which assignments at the old context move."""
    assignment_ids: Optional[List[str]] = None
    user_ids: Optional[List[str]] = None
    role_id: Optional[str] = None


class AssignmentTransferRequest(BaseModel):
    """Re-point assignments from one context to another."""
    old_context: ContextRef
    new_context: ContextRef
    filter: AssignmentTransferFilter = Field(default_factory=AssignmentTransferFilter)
    org_id: Optional[str] = Field(None, max_length=26)

    @model_validator(mode="after")
    def contexts_differ(self):
        if self.old_context == self.new_context:
            raise ValueError("old_context and new_context must differ")
        return self


class UserReassignRequest(BaseModel):
    """Move grants from one user to another inside the same organization."""
    from_user_id: str = Field(..., min_length=1, max_length=26)
    to_user_id: str = Field(..., min_length=1, max_length=26)
    assignment_ids: Optional[List[str]] = Field(None, description="If empty, all currently effective grants move")
    preserve_primary: bool = False
    org_id: Optional[str] = Field(None, max_length=26)

    @model_validator(mode="after")
    def users_differ(self):
        if self.from_user_id == self.to_user_id:
            raise ValueError("from_user_id and to_user_id must differ")
        return self


class TransferResult(BaseModel):
    transferred: int
    assignment_ids: List[str]


# ============================================================================
# Queries
# ============================================================================

class AssignmentFilters(BaseModel):
    """Filters for listing assignments inside one tenant."""
    user_id: Optional[str] = None
    role_id: Optional[str] = None
    context_type: Optional[ContextType] = None
    context_id: Optional[str] = None
    is_primary: Optional[bool] = None
    trade_type: Optional[str] = None
    effective_only: bool = Field(False, description="Only rows whose validity window contains today")
    include_deleted: bool = Field(False, description="Audit mode: include soft-deleted rows")
    page: int = Field(1, ge=1)
    page_size: Optional[int] = Field(None, ge=1)


# ============================================================================
# Responses
# ============================================================================

class AssignmentResponse(BaseModel):
    """Schema for assignment response."""
    id: str
    user_id: str
    role_id: str
    org_id: str
    context_type: ContextType
    context_id: str
    trade_type: Optional[str]
    is_primary: bool
    start_date: Optional[date]
    end_date: Optional[date]
    status: AssignmentStatus
    created_at: datetime
    created_by: str
    updated_at: datetime
    updated_by: str
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AssignmentListResponse(BaseModel):
    """Schema for paginated assignment list."""
    items: List[AssignmentResponse]
    total: int
    page: int
    page_size: int
    pages: int


class UserContext(BaseModel):
    """One context a user is assigned to, as exposed to collaborators."""
    context_type: ContextType
    context_id: str
    role_id: str
    is_primary: bool

    model_config = ConfigDict(from_attributes=True)


class UserAssignmentSummary(BaseModel):
    user_id: str
    org_id: str
    total_assignments: int
    effective_assignments: int
    assignments_by_type: Dict[str, int]
    assignments: List[AssignmentResponse]


class ContextAssignmentSummary(BaseModel):
    context_type: ContextType
    context_id: str
    org_id: str
    assignments: List[AssignmentResponse]
