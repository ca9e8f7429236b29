"""
Identity extraction from bearer tokens.

Tokens are issued and verified by the identity provider in front of this
service (API gateway authorizer). Here the claims are decoded once and turned
into a typed ``Identity``; nothing downstream looks at raw claims again.
"""
from typing import Any, Dict

import jwt
from fastapi import HTTPException, status
from pydantic import ValidationError as PydanticValidationError

from access_control.features.users.schemas import Identity
from access_control.features.users.models import User
from access_control.utils import get_logger


log = get_logger(__name__)


def decode_claims(token: str) -> Dict[str, Any]:
    """
    Decode a JWT and return its payload.

    Raises:
        HTTPException: If token is malformed or expired
    """
    try:
        # Signature was verified upstream by the gateway
        return jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": True}
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.lower() == "true"


def identity_from_claims(claims: Dict[str, Any]) -> Identity:
    """
    Build the typed identity from token claims.

    Expected claims: ``user_id``, ``org_id`` (string or number) and optional
    ``isSuperAdmin`` (bool or "true"/"false").
    """
    try:
        return Identity(
            user_id=claims.get("user_id"),
            org_id=claims.get("org_id"),
            is_super_admin=_flag(claims.get("isSuperAdmin", False)),
        )
    except PydanticValidationError as e:
        log.info("Rejected token claims: %s", e.errors())
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )


def identity_from_token(token: str) -> Identity:
    return identity_from_claims(decode_claims(token))


def identity_from_user(user: User) -> Identity:
    return Identity(user_id=user.id, org_id=user.org_id, is_super_admin=user.is_super_admin)
