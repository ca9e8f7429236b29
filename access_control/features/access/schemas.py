"""
Pydantic schemas for access evaluation.
"""
from typing import List, Optional
from pydantic import BaseModel

from access_control.features.hierarchy.types import ContextType


class AccessDecision(BaseModel):
    """Outcome of an access check plus the assignment that produced it."""
    granted: bool
    reason: str
    assignment_id: Optional[str] = None
    context_type: Optional[ContextType] = None
    context_id: Optional[str] = None
    inherited: bool = False


class AccessibleResourcesResponse(BaseModel):
    user_id: str
    resource_type: ContextType
    resource_ids: List[str]
