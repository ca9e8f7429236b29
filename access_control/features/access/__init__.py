"""
Access evaluation feature module.

Decides whether a user may act on a resource by expanding effective assignments
down the organization > location > project hierarchy.
"""
