"""
Constants and small builders shared by the test modules.
"""
from datetime import date
from typing import Any

import jwt

from access_control.features.users.schemas import Identity


TODAY = date(2025, 6, 15)
ADMIN_ID = "90"


def identity(user_id: str, org_id: str = "10", is_super_admin: bool = False) -> Identity:
    return Identity(user_id=user_id, org_id=org_id, is_super_admin=is_super_admin)


def bearer(user_id: str, org_id: str = "10", **claims: Any) -> dict[str, str]:
    """Authorization header carrying an unsigned-for-our-purposes JWT."""
    token = jwt.encode({"user_id": user_id, "org_id": org_id, **claims}, "test-secret", algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}
