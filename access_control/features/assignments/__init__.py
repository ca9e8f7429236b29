"""
Assignment management feature module.

Implements role assignments scoped to an organization, a location or a project,
with validity windows, one primary role per user and context, and an audit trail.
"""
