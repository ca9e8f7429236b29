"""
FastAPI dependencies wiring assignment components to the startup database handle.
"""
from typing import Annotated
from fastapi import Depends

from access_control.core.database.engine import Database, get_database
from access_control.features.assignments.lifecycle import AssignmentLifecycleManager
from access_control.features.assignments.queries import AssignmentQueries


def get_lifecycle(database: Annotated[Database, Depends(get_database)]) -> AssignmentLifecycleManager:
    return AssignmentLifecycleManager(database)


def get_queries(database: Annotated[Database, Depends(get_database)]) -> AssignmentQueries:
    return AssignmentQueries(database)
