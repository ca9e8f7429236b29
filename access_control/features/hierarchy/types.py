"""
Shared vocabulary for the organization -> location -> project hierarchy.
"""
import enum
from typing import NamedTuple, Protocol


class ContextType(str, enum.Enum):
    """Hierarchy level an assignment is scoped to. Also used as resource type."""
    ORGANIZATION = "organization"
    LOCATION = "location"
    PROJECT = "project"


class ResourceRef(NamedTuple):
    resource_type: ContextType
    resource_id: str


class Grant(Protocol):
    """Anything carrying an assignment's scope: ORM rows, schemas, test doubles."""
    org_id: str
    context_type: ContextType
    context_id: str
